"""Tests for SSH credential sources."""

from __future__ import annotations

from pathlib import Path

import pytest

from usermgmt.exceptions import MissingCredential
from usermgmt.services.credentials import (
    GivenSshCredential,
    InteractiveSshCredential,
    KeySuggestion,
    ReadonlySshCredential,
    SshKeyPair,
)


class ScriptedPrompt:
    """Returns queued answers and counts how often it was asked."""

    def __init__(self, *answers: str) -> None:
        self.answers = list(answers)
        self.questions: list[str] = []

    def __call__(self, text: str, **kwargs) -> str:
        self.questions.append(text)
        return self.answers.pop(0)


class TestSshKeyPair:
    def test_without_extension(self):
        pair = SshKeyPair.from_one_path("/home/admin/.ssh/id_ed25519")
        assert pair.private_key == Path("/home/admin/.ssh/id_ed25519")
        assert pair.public_key == Path("/home/admin/.ssh/id_ed25519.pub")

    def test_public_path_given(self):
        pair = SshKeyPair.from_one_path("/keys/cluster.pub")
        assert pair.public_key == Path("/keys/cluster.pub")
        assert pair.private_key == Path("/keys/cluster.pub")


class TestInteractiveSshCredential:
    def test_prompts_once(self, cfg):
        prompt = ScriptedPrompt("admin", "secret")
        cred = InteractiveSshCredential(cfg, prompt=prompt, echo=lambda _: None)
        assert cred.username() == "admin"
        assert cred.username() == "admin"
        assert cred.password() == "secret"
        assert cred.password() == "secret"
        assert len(prompt.questions) == 2

    def test_blank_username_uses_default(self, cfg):
        cred = InteractiveSshCredential(
            cfg, prompt=ScriptedPrompt("  "), echo=lambda _: None,
        )
        assert cred.username() == cfg.default_ssh_user

    def test_blank_username_without_default(self, cfg):
        cfg.default_ssh_user = ""
        cred = InteractiveSshCredential(
            cfg, prompt=ScriptedPrompt(""), echo=lambda _: None,
        )
        with pytest.raises(MissingCredential):
            cred.username()

    def test_empty_password(self, cfg):
        cred = InteractiveSshCredential(
            cfg, prompt=ScriptedPrompt(""), echo=lambda _: None,
        )
        with pytest.raises(MissingCredential, match="No password provided"):
            cred.password()

    def test_key_pair_from_argument(self, cfg):
        cred = InteractiveSshCredential(cfg, key_path="/keys/id_rsa")
        assert cred.key_pair().public_key == Path("/keys/id_rsa.pub")

    def test_no_key_pair(self, cfg):
        assert InteractiveSshCredential(cfg).key_pair() is None

    def test_agent_choice(self, cfg):
        lines: list[str] = []
        cred = InteractiveSshCredential(
            cfg, prompt=ScriptedPrompt("1"), echo=lines.append,
        )
        keys = [KeySuggestion("work"), KeySuggestion("home")]
        assert cred.resolve_agent_choice(keys) == 1
        assert "1 => comment: home" in lines

    @pytest.mark.parametrize("answer", ["", "two", "2", "-1"])
    def test_agent_choice_rejected(self, cfg, answer):
        cred = InteractiveSshCredential(
            cfg, prompt=ScriptedPrompt(answer), echo=lambda _: None,
        )
        with pytest.raises(MissingCredential):
            cred.resolve_agent_choice([KeySuggestion("a"), KeySuggestion("b")])


class TestGivenSshCredential:
    def test_values(self):
        cred = GivenSshCredential("admin", "secret", agent_choice=2)
        assert cred.username() == "admin"
        assert cred.password() == "secret"
        assert cred.resolve_agent_choice([]) == 2
        assert cred.key_pair() is None

    def test_missing_password(self):
        with pytest.raises(MissingCredential):
            GivenSshCredential("admin", "").password()


class TestReadonlySshCredential:
    def test_from_config(self, cfg):
        cfg.default_ssh_user = "reader"
        cfg.ssh_password = "pw"
        cred = ReadonlySshCredential(cfg)
        assert cred.username() == "reader"
        assert cred.password() == "pw"

    def test_no_password_configured(self, cfg):
        with pytest.raises(MissingCredential):
            ReadonlySshCredential(cfg).password()

    def test_cannot_choose_agent_key(self, cfg):
        with pytest.raises(MissingCredential):
            ReadonlySshCredential(cfg).resolve_agent_choice([KeySuggestion("a")])
