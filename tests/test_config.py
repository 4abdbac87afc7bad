from __future__ import annotations

from pathlib import Path

import pytest

from docgraph.config import DocGraphConfig, LLMConfig, WorkflowConfig
from docgraph.llm import LangChainChatProvider, MockGenerativeEngine
from docgraph.paths import STATE_FILENAME


def test_llm_config_resolve_api_key_precedence(monkeypatch: pytest.MonkeyPatch) -> None:
    cfg = LLMConfig(api_key_env="CUSTOM", fallback_api_key_envs=("OPENAI_API_KEY",))

    assert cfg.resolve_api_key(override="override-key") == "override-key"

    monkeypatch.setenv("CUSTOM", "primary-key")
    assert cfg.resolve_api_key() == "primary-key"

    monkeypatch.delenv("CUSTOM")
    monkeypatch.setenv("OPENAI_API_KEY", "fallback-key")
    assert cfg.resolve_api_key() == "fallback-key"


def test_llm_config_provider_kwargs_merge() -> None:
    cfg = LLMConfig(
        model="base-model",
        base_url="https://example.com",
        temperature=0.3,
        max_tokens=256,
    )
    kwargs = cfg.provider_kwargs(api_key="inline-key", temperature=0.8)

    assert kwargs["model"] == "base-model"
    assert kwargs["base_url"] == "https://example.com"
    assert kwargs["api_key"] == "inline-key"
    assert kwargs["temperature"] == 0.8
    assert kwargs["max_tokens"] == 256


def test_config_defaults_read_environment_at_construction(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCGRAPH_PROVIDER", "mock")
    monkeypatch.setenv("DOCGRAPH_LANGUAGE", "vi")
    monkeypatch.setenv("DOCGRAPH_AUTO_APPROVE", "yes")
    monkeypatch.setenv("DOCGRAPH_RECURSION_LIMIT", "80")

    llm = LLMConfig()
    workflow = WorkflowConfig()

    assert llm.is_mock is True
    assert llm.model is None
    assert llm.temperature is None
    assert workflow.language == "vi"
    assert workflow.auto_approve is True
    assert workflow.recursion_limit == 80


def test_create_engine_selects_backend(dummy_chat_model) -> None:
    assert isinstance(LLMConfig(provider="mock").create_engine(), MockGenerativeEngine)

    engine = DocGraphConfig(llm=LLMConfig(provider="openai", model="m")).create_engine(temperature=0.4)
    assert isinstance(engine, LangChainChatProvider)
    assert engine.settings.temperature == 0.4


def test_docgraph_config_path_resolution(tmp_path: Path) -> None:
    state_dir = tmp_path / "state"
    export_dir = tmp_path / "exports"

    cfg = DocGraphConfig().with_paths(state_file=state_dir / "run.json", export_root=export_dir)
    assert cfg.state_file == state_dir / "run.json"
    assert cfg.export_root == export_dir
    assert export_dir.exists() is False

    cfg.ensure_directories()
    assert state_dir.exists()
    assert export_dir.exists()

    # an existing directory resolves to the default snapshot name inside it
    assert DocGraphConfig().with_paths(state_file=state_dir).state_file == state_dir / STATE_FILENAME


def test_engine_settings_fall_back_to_environment_once(monkeypatch: pytest.MonkeyPatch, dummy_chat_model) -> None:
    monkeypatch.setenv("OPENAI_MODEL", "env-model")
    monkeypatch.setenv("OPENAI_BASE_URL", "https://env.example")
    monkeypatch.setenv("DOCGRAPH_TEMPERATURE", "0.7")
    monkeypatch.setenv("DOCGRAPH_MAX_TOKENS", "300")

    from_env = LLMConfig(provider="openai").create_engine()
    explicit = LLMConfig(provider="openai", model="cli-model", temperature=0.2).create_engine()

    assert from_env.settings.model == "env-model"
    assert from_env.settings.base_url == "https://env.example"
    assert from_env.settings.temperature == 0.7
    assert from_env.settings.max_tokens == 300
    assert explicit.settings.model == "cli-model"
    assert explicit.settings.temperature == 0.2
    assert explicit.settings.max_tokens == 300
