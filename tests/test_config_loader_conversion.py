import json

from majordomo.config.loader import convert_keys, convert_to_camel, load_config, save_config
from majordomo.config.schema import Config


def test_convert_keys_preserves_decay_rate_names() -> None:
    data = {
        "memory": {
            "decayRates": {"ephemeral": 0.5, "long_term": 0.001},
            "minStrength": 0.2,
        }
    }

    converted = convert_keys(data)

    assert converted == {
        "memory": {
            "decay_rates": {"ephemeral": 0.5, "long_term": 0.001},
            "min_strength": 0.2,
        }
    }


def test_convert_keys_converts_nested_lists() -> None:
    data = {"items": [{"maxPerHour": 3}, {"cooldownMs": 10}]}

    assert convert_keys(data) == {"items": [{"max_per_hour": 3}, {"cooldown_ms": 10}]}


def test_convert_to_camel_preserves_opaque_maps() -> None:
    data = {
        "memory": {
            "reinforce_boosts": {"long_term": 0.1},
            "dedup_threshold": 0.9,
        }
    }

    assert convert_to_camel(data) == {
        "memory": {
            "reinforceBoosts": {"long_term": 0.1},
            "dedupThreshold": 0.9,
        }
    }


def test_load_missing_file_returns_defaults(tmp_path) -> None:
    config = load_config(tmp_path / "nope.json")

    assert config.interruptions.max_per_hour == 10
    assert config.memory.dedup_threshold == 0.95
    assert config.autonomy.pattern_cache_size == 512


def test_load_invalid_file_falls_back_to_defaults(tmp_path) -> None:
    broken = tmp_path / "config.json"
    broken.write_text("{not json", encoding="utf-8")
    assert load_config(broken).orchestrator.action_interval_ms == 100

    out_of_range = tmp_path / "range.json"
    out_of_range.write_text(json.dumps({"interruptions": {"urgencyBypassThreshold": 42}}), encoding="utf-8")
    assert load_config(out_of_range).interruptions.urgency_bypass_threshold == 9


def test_save_and_reload(tmp_path) -> None:
    path = tmp_path / "nested" / "config.json"
    config = Config()
    config.goals.decay_rate = 0.1
    config.memory.decay_rates["long_term"] = 0.01

    save_config(config, path)

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["goals"]["decayRate"] == 0.1
    assert raw["memory"]["decayRates"]["long_term"] == 0.01
    assert raw["orchestrator"]["perceptionIntervalMs"] == 500

    reloaded = load_config(path)
    assert reloaded.goals.decay_rate == 0.1
    assert reloaded.memory.decay_rates["long_term"] == 0.01


def test_environment_overrides(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("MAJORDOMO_INTERRUPTIONS__MAX_PER_HOUR", "4")
    monkeypatch.setenv("MAJORDOMO_STORAGE__DB_PATH", str(tmp_path / "x.db"))

    config = load_config(tmp_path / "missing.json")

    assert config.interruptions.max_per_hour == 4
    assert config.db_path == tmp_path / "x.db"
