from pathlib import Path

import pytest

import lloms.config as config_module
from lloms.config import Config
from lloms.exceptions import ConfigurationError

ENV_KEYS = [
    "OLLAMA_HOST",
    "LLM_CHAT",
    "LLM_WITH_TOOLS_SUPPORT",
    "SYSTEM_PROMPT",
    "ENABLE_MCP",
    "HISTORY_LIMIT",
    "TEMPERATURE",
    "REPEAT_LAST_N",
    "REPEAT_PENALTY",
    "TOOLS_TEMPERATURE",
    "TOOLS_REPEAT_LAST_N",
    "TOOLS_REPEAT_PENALTY",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "home" / "config.yml")


def test_load_reads_local_config_yml(tmp_path: Path):
    (tmp_path / "config.yml").write_text(
        (
            "ollama_url: http://ollama:11434\n"
            "chat_model: qwen2.5:3b\n"
            "tools_model: qwen2.5:0.5b\n"
            "system_prompt: Be brief\n"
            "enable_mcp: true\n"
            "mcp:\n"
            "  servers:\n"
            "    - name: mcp-curl\n"
            "      command: docker\n"
            "      args: [run, --rm, -i, mcp-curl]\n"
        ),
        encoding="utf-8",
    )

    cfg = Config.load()

    assert cfg.ollama_url == "http://ollama:11434"
    assert cfg.system_prompt == "Be brief"
    assert cfg.enable_mcp is True
    server = cfg.first_mcp_server()
    assert server is not None
    assert server.name == "mcp-curl"
    assert server.args == ["run", "--rm", "-i", "mcp-curl"]


def test_load_raises_when_no_config_file():
    with pytest.raises(ConfigurationError):
        Config.load()


def test_load_raises_on_invalid_yaml(tmp_path: Path):
    (tmp_path / "config.yml").write_text("chat_model: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        Config.load()


def test_load_raises_on_non_mapping(tmp_path: Path):
    (tmp_path / "config.yml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        Config.load()


def test_load_raises_on_wrong_types(tmp_path: Path):
    (tmp_path / "config.yml").write_text("history_limit: lots\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        Config.load()


def test_explicit_path_wins(tmp_path: Path):
    (tmp_path / "config.yml").write_text("chat_model: local\n", encoding="utf-8")
    other = tmp_path / "other.yml"
    other.write_text("chat_model: explicit\n", encoding="utf-8")

    cfg = Config.load(other)

    assert cfg.chat_model == "explicit"


def test_env_overrides_yaml_per_key(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    (tmp_path / "config.yml").write_text(
        (
            "ollama_url: http://from-yaml:11434\n"
            "chat_model: yaml-chat\n"
            "tools_model: yaml-tools\n"
            "chat:\n"
            "  temperature: 0.8\n"
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("OLLAMA_HOST", "http://from-env:11434")
    monkeypatch.setenv("TEMPERATURE", "0.1")
    monkeypatch.setenv("TOOLS_REPEAT_LAST_N", "7")
    monkeypatch.setenv("ENABLE_MCP", "TRUE")

    cfg = Config.load()

    assert cfg.ollama_url == "http://from-env:11434"
    assert cfg.chat_model == "yaml-chat"
    assert cfg.chat.temperature == 0.1
    assert cfg.tools.repeat_last_n == 7
    assert cfg.enable_mcp is True


def test_env_overrides_from_dotenv(tmp_path: Path):
    (tmp_path / "config.yml").write_text("chat_model: yaml-chat\n", encoding="utf-8")
    (tmp_path / ".env").write_text("LLM_CHAT=dotenv-chat\nSYSTEM_PROMPT=Be brief\n", encoding="utf-8")

    cfg = Config.load()

    assert cfg.chat_model == "dotenv-chat"
    assert cfg.system_prompt == "Be brief"


def test_unparseable_env_number_keeps_file_value(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    (tmp_path / "config.yml").write_text("chat:\n  repeat_penalty: 1.5\n", encoding="utf-8")
    monkeypatch.setenv("REPEAT_PENALTY", "high")

    cfg = Config.load()

    assert cfg.chat.repeat_penalty == 1.5


def test_enable_mcp_only_true_string_is_true(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    (tmp_path / "config.yml").write_text("enable_mcp: true\n", encoding="utf-8")
    monkeypatch.setenv("ENABLE_MCP", "yes")

    cfg = Config.load()

    assert cfg.enable_mcp is False


def test_maps_legacy_flat_sampling_keys(tmp_path: Path):
    (tmp_path / "config.yml").write_text(
        (
            "temperature: 0.3\n"
            "repeat_last_n: 3\n"
            "repeat_penalty: 1.7\n"
            "tools_temperature: 0.0\n"
            "tools_repeat_last_n: 1\n"
            "tools_repeat_penalty: 1.1\n"
        ),
        encoding="utf-8",
    )

    cfg = Config.load()

    assert cfg.chat.temperature == 0.3
    assert cfg.chat.repeat_last_n == 3
    assert cfg.chat.repeat_penalty == 1.7
    assert cfg.tools.temperature == 0.0
    assert cfg.tools.repeat_last_n == 1
    assert cfg.tools.repeat_penalty == 1.1
    # Untouched tool sampling defaults survive the mapping.
    assert cfg.tools.top_k == 40
    assert cfg.tools.mirostat_tau == 1.0


def test_example_config_keeps_tool_sampling_defaults(tmp_path: Path):
    example = Path(__file__).resolve().parents[2] / "config.example.yml"
    (tmp_path / "config.yml").write_text(example.read_text(encoding="utf-8"), encoding="utf-8")

    cfg = Config.load()
    options = cfg.tools.to_options()

    assert options["temperature"] == 0.0
    assert options["top_k"] == 40
    assert options["top_p"] == 0.9
    assert options["mirostat_tau"] == 1.0
    assert "top_k" not in cfg.chat.to_options()


def test_partial_tools_section_overrides_only_named_keys(tmp_path: Path):
    (tmp_path / "config.yml").write_text("tools:\n  top_k: 10\n", encoding="utf-8")

    cfg = Config.load()

    assert cfg.tools.top_k == 10
    assert cfg.tools.top_p == 0.9
    assert cfg.tools.temperature == 0.0


def test_nested_value_beats_legacy_flat_key(tmp_path: Path):
    (tmp_path / "config.yml").write_text(
        "temperature: 0.3\nchat:\n  temperature: 0.9\n",
        encoding="utf-8",
    )

    cfg = Config.load()

    assert cfg.chat.temperature == 0.9


def test_sampling_options_drop_unset_keys():
    cfg = Config()

    chat_options = cfg.chat.to_options()
    tools_options = cfg.tools.to_options()

    assert "top_k" not in chat_options
    assert chat_options["num_ctx"] == 25920
    assert chat_options["mirostat_tau"] == 5.0
    assert tools_options["top_k"] == 40
    assert tools_options["top_p"] == 0.9
    assert tools_options["mirostat_tau"] == 1.0


def test_first_mcp_server_requires_enable_flag():
    cfg = Config(
        enable_mcp=False,
        mcp={"servers": [{"name": "a", "command": "a-cmd"}]},
    )
    assert cfg.first_mcp_server() is None

    cfg.enable_mcp = True
    server = cfg.first_mcp_server()
    assert server is not None
    assert server.name == "a"
