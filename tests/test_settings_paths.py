from pathlib import Path

from core import settings


def test_linux_data_dir_with_xdg():
    env = {"XDG_DATA_HOME": "/tmp/xdg"}
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="linux",
        env=env,
        home=Path("/home/test"),
    )
    assert result == Path("/tmp/xdg") / settings.APP_NAME


def test_linux_data_dir_default_home():
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="linux",
        env={},
        home=Path("/home/test"),
    )
    assert result == Path("/home/test/.local/share") / settings.APP_NAME


def test_macos_data_dir():
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="darwin",
        env={},
        home=Path("/Users/test"),
    )
    expected = Path("/Users/test/Library/Application Support") / settings.APP_NAME
    assert result == expected


def test_windows_data_dir_appdata():
    env = {"APPDATA": "C:/Users/test/AppData/Roaming"}
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="win32",
        env=env,
        home=Path("C:/Users/test"),
    )
    expected = Path(env["APPDATA"]) / settings.APP_NAME
    assert result == expected


def test_app_name_is_sanitized():
    result = settings.get_default_data_dir("a/b", platform="linux", env={}, home=Path("/home/test"))
    assert result.name == "a-b"


def test_runtime_paths_inside_data_dir():
    assert settings.DB_PATH.parent == settings.DATA_DIR
    assert settings.SESSION_PATH.parent == settings.STORAGE_DIR
    assert settings.UPLOAD_LOG_PATH.parent == settings.LOG_DIR
    assert settings.LOGGING.path == settings.UPLOAD_LOG_PATH


def test_upload_defaults_point_at_unified_endpoints():
    assert settings.UPLOAD.create_path == "/api/fo/create_unified"
    assert settings.UPLOAD.update_path.format(record_id=7) == "/api/fo/update_unified/7"
    assert settings.UPLOAD.request_timeout_sec is None
