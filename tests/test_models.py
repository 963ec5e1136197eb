"""Tests for user models and their defaults."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from usermgmt.models.users import (
    Group,
    NewUser,
    UserAddRequest,
    UserChanges,
    UserModifyRequest,
)


def request(**overrides) -> UserAddRequest:
    fields = {"username": " alice1 ", "firstname": "Alice", "lastname": "Liddell"}
    fields.update(overrides)
    return UserAddRequest(**fields)


class TestGroup:
    @pytest.mark.parametrize("text", ["staff", "Staff", " STAFF "])
    def test_parse(self, text):
        assert Group.parse(text) is Group.staff

    def test_parse_invalid(self):
        with pytest.raises(ValueError, match="worker"):
            Group.parse("worker")

    def test_faculty_uses_staff_qos(self, cfg):
        assert Group.faculty.qos(cfg) == cfg.staff_qos
        assert Group.faculty.gid(cfg) == cfg.faculty_gid


class TestNewUser:
    def test_student_defaults(self, cfg):
        user = NewUser.from_request(request(), cfg)
        assert user.username == "alice1"
        assert user.group is Group.student
        assert user.gid == cfg.student_gid
        assert user.qos == ["interactive", "basic"]
        assert user.default_qos == "basic"

    def test_explicit_qos(self, cfg):
        user = NewUser.from_request(
            request(group="staff", qos=["advanced"], default_qos="advanced"), cfg,
        )
        assert user.qos == ["advanced"]

    def test_unknown_qos(self, cfg):
        with pytest.raises(ValueError, match="gold"):
            NewUser.from_request(request(qos=["gold"], default_qos="gold"), cfg)

    def test_default_not_in_qos(self, cfg):
        with pytest.raises(ValueError, match="default qos"):
            NewUser.from_request(request(qos=["basic"], default_qos="advanced"), cfg)


class TestUserChanges:
    def test_qos_needs_default(self):
        with pytest.raises(ValidationError):
            UserChanges(username="bob", qos=["basic"])

    def test_default_needs_qos(self):
        with pytest.raises(ValidationError):
            UserChanges(username="bob", default_qos="basic")

    def test_qos_pair(self):
        changes = UserChanges(username="bob", qos=["basic"], default_qos="basic")
        assert changes.qos_and_default_qos() == (["basic"], "basic")

    def test_no_qos_change(self):
        assert UserChanges(username="bob", mail="b@example.org").qos_and_default_qos() is None


def test_request_group_case_insensitive():
    assert request(group="Staff").group is Group.staff


class TestUserChangesValidation:
    def test_unknown_qos(self, cfg):
        req = UserModifyRequest(qos=["bogus"], default_qos="bogus")
        with pytest.raises(ValueError, match="bogus"):
            UserChanges.from_request("bob", req, cfg)

    def test_default_not_in_qos(self, cfg):
        req = UserModifyRequest(qos=["basic"], default_qos="advanced")
        with pytest.raises(ValueError, match="default qos"):
            UserChanges.from_request("bob", req, cfg)

    def test_valid_change(self, cfg):
        req = UserModifyRequest(qos=["basic", "advanced"], default_qos="advanced")
        changes = UserChanges.from_request("bob", req, cfg)
        assert changes.qos_and_default_qos() == (["basic", "advanced"], "advanced")

    def test_no_qos_change_skips_validation(self, cfg):
        changes = UserChanges.from_request("bob", UserModifyRequest(mail="b@example.org"), cfg)
        assert changes.qos is None
