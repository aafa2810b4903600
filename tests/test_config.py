from routine_engine.config import AnalyticsConfig, EngineConfig, load_config


def test_missing_file_gives_defaults(tmp_path):
    cfg, warning = load_config(tmp_path / "routine.toml")
    assert cfg == EngineConfig()
    assert warning == ""


def test_values_are_read_and_clamped(tmp_path):
    path = tmp_path / "routine.toml"
    path.write_text(
        "[scheduler]\n"
        "reminder_interval_hours = 2\n"
        "migrate_interval_hours = 0\n"
        'digest_enabled = "off"\n'
        "[analytics]\n"
        "overall_record_cap = 500\n"
        'decline_threshold = "not a number"\n',
        encoding="utf-8",
    )
    cfg, warning = load_config(path)

    assert warning == ""
    assert cfg.scheduler.reminder_interval_hours == 2
    assert cfg.scheduler.migrate_interval_hours == 1
    assert cfg.scheduler.digest_enabled is False
    assert cfg.analytics.overall_record_cap == 500
    assert cfg.analytics.decline_threshold == AnalyticsConfig.decline_threshold


def test_parse_failure_returns_defaults_with_warning(tmp_path):
    path = tmp_path / "routine.toml"
    path.write_text("[scheduler\n", encoding="utf-8")
    cfg, warning = load_config(path)
    assert cfg == EngineConfig()
    assert warning.startswith("routine.toml parse failed")
