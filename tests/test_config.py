from gamelib.config import SearchConfig


def test_defaults():
    cfg = SearchConfig()
    assert cfg.max_results == 10
    assert cfg.detail_batch_size > 0
    assert cfg.detail_batch_delay > 0
    assert cfg.fallback_enabled is True
    assert cfg.user_agent.startswith("Mozilla/5.0")


def test_from_env_reads_prefixed_values():
    cfg = SearchConfig.from_env({
        "GAMELIB_DETAIL_BATCH_SIZE": "20",
        "GAMELIB_DETAIL_BATCH_DELAY": "0.25",
        "GAMELIB_FALLBACK_ENABLED": "no",
        "GAMELIB_COUNTRY": "DE",
        "GAMELIB_CACHE_MAX_ENTRIES": "unbounded",
    })
    assert cfg.detail_batch_size == 20
    assert cfg.detail_batch_delay == 0.25
    assert cfg.fallback_enabled is False
    assert cfg.country == "DE"
    assert cfg.cache_max_entries is None


def test_from_env_ignores_garbage(caplog):
    cfg = SearchConfig.from_env({"GAMELIB_MAX_RESULTS": "lots", "GAMELIB_RPS": ""})
    assert cfg.max_results == 10
    assert cfg.rps == 2.0
    assert "GAMELIB_MAX_RESULTS" in caplog.text


def test_overrides_win_and_none_is_ignored():
    cfg = SearchConfig.from_env({"GAMELIB_COUNTRY": "DE"}, country="GB", detail_batch_size=None)
    assert cfg.country == "GB"
    assert cfg.detail_batch_size == SearchConfig().detail_batch_size
