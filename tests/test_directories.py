"""Tests for user directory provisioning across compute nodes, NFS and home."""

from __future__ import annotations

import pytest

from usermgmt.exceptions import AggregatedPartialFailure, MissingCredential
from usermgmt.models.users import Group, NewUser
from usermgmt.services import directories
from usermgmt.services.credentials import InteractiveSshCredential

DIR_CREATION_FAILED = "Not all compute nodes returned exit code 0 during directory creation!"


@pytest.fixture
def alice() -> NewUser:
    return NewUser(
        username="alice1",
        firstname="Alice",
        lastname="Liddell",
        group=Group.student,
        gid=1002,
        default_qos="basic",
        qos=["interactive", "basic"],
    )


@pytest.fixture
def compute_only(cfg):
    cfg.nfs_hosts = []
    cfg.home_host = ""
    return cfg


class TestComputeNodes:
    def test_all_succeed(self, compute_only, credentials, fake_sessions, alice):
        directories.add_user_directories(alice, compute_only, credentials)
        assert fake_sessions.commands_on("node-a") == [
            "sudo mkdir -p /disk/users/alice1",
            "sudo chown alice1:student /disk/users/alice1",
            "sudo setquota -u alice1 200G 220G 0 0 /disk",
        ]
        assert fake_sessions.opened == ["node-a", "node-b"]

    def test_one_node_fails_mkdir(self, compute_only, credentials, fake_sessions, alice):
        fake_sessions.script("node-a", mkdir=1)
        with pytest.raises(AggregatedPartialFailure) as excinfo:
            directories.add_user_directories(alice, compute_only, credentials)

        # node-b is still fully provisioned
        assert fake_sessions.commands_on("node-a") == ["sudo mkdir -p /disk/users/alice1"]
        assert fake_sessions.commands_on("node-b") == [
            "sudo mkdir -p /disk/users/alice1",
            "sudo chown alice1:student /disk/users/alice1",
            "sudo setquota -u alice1 200G 220G 0 0 /disk",
        ]
        message = str(excinfo.value)
        assert message.count(DIR_CREATION_FAILED) == 1
        assert "ownership change" not in message
        assert "quota setup" not in message

    def test_both_nodes_fail_reported_once(self, compute_only, credentials, fake_sessions, alice):
        fake_sessions.script("node-a", mkdir=1)
        fake_sessions.script("node-b", mkdir=1)
        with pytest.raises(AggregatedPartialFailure) as excinfo:
            directories.add_user_directories(alice, compute_only, credentials)
        assert str(excinfo.value).count(DIR_CREATION_FAILED) == 1

    def test_unreachable_node_does_not_stop_loop(
        self, compute_only, credentials, fake_sessions, alice,
    ):
        fake_sessions.unreachable.add("node-a")
        with pytest.raises(AggregatedPartialFailure, match="node-a"):
            directories.add_user_directories(alice, compute_only, credentials)
        assert len(fake_sessions.commands_on("node-b")) == 3

    def test_no_quota_without_limits(self, compute_only, credentials, fake_sessions, alice):
        compute_only.quota_softlimit = ""
        directories.add_user_directories(alice, compute_only, credentials)
        assert all("setquota" not in cmd for cmd in fake_sessions.commands_on("node-a"))

    def test_skipped_without_nodes(self, compute_only, credentials, fake_sessions, alice):
        compute_only.compute_nodes = []
        directories.add_user_directories(alice, compute_only, credentials)
        assert fake_sessions.opened == []


class TestNfsAndHome:
    def test_nfs_student_dir(self, cfg, credentials, fake_sessions, alice):
        directories.add_user_directories(alice, cfg, credentials)
        assert fake_sessions.commands_on("nfs-1") == [
            "sudo mkdir -p /srv/nfs/students/alice1",
            "sudo chown alice1:student /srv/nfs/students/alice1",
            "sudo setquota -u alice1 50G 55G 0 0 /srv",
        ]

    def test_home_with_helper(self, cfg, credentials, fake_sessions, alice):
        directories.add_user_directories(alice, cfg, credentials)
        assert fake_sessions.commands_on("home") == [
            "sudo mkhomedir_helper alice1",
            "sudo chown alice1:student /home/alice1",
            "sudo setquota -u alice1 2G 3G 0 0 /home",
        ]

    def test_home_without_helper(self, cfg, credentials, fake_sessions, alice):
        cfg.use_homedir_helper = False
        directories.add_user_directories(alice, cfg, credentials)
        assert fake_sessions.commands_on("home")[0] == "sudo mkdir -p /home/alice1"

    def test_failures_of_all_roles_combined(self, cfg, credentials, fake_sessions, alice):
        fake_sessions.script("node-b", chown=1)
        fake_sessions.script("nfs-1", mkdir=1)
        fake_sessions.script("home", setquota=4)
        with pytest.raises(AggregatedPartialFailure) as excinfo:
            directories.add_user_directories(alice, cfg, credentials)

        message = str(excinfo.value)
        assert "during ownership change" in message
        assert "NFS host nfs-1 did not return with exit code 0 during directory creation!" in message
        assert "(actual exit code: 4)" in message
        assert len(excinfo.value.failures) == 3

    def test_nfs_quota_still_set_after_failed_mkdir(self, cfg, credentials, fake_sessions, alice):
        fake_sessions.script("nfs-1", mkdir=1)
        with pytest.raises(AggregatedPartialFailure):
            directories.add_user_directories(alice, cfg, credentials)
        assert fake_sessions.commands_on("nfs-1")[-1].startswith("sudo setquota")


class TestDelete:
    def test_removes_everywhere(self, cfg, credentials, fake_sessions):
        assert directories.delete_user_directories("alice1", cfg, credentials) is True
        assert fake_sessions.commands_on("home") == ["sudo rm -r /home/alice1"]
        assert fake_sessions.commands_on("nfs-1") == ["sudo rm -r /srv/nfs/students/alice1"]
        assert fake_sessions.commands_on("node-b") == ["sudo rm -r /disk/users/alice1"]

    def test_staff_nfs_dir(self, cfg, credentials, fake_sessions):
        directories.delete_user_directories("bob", cfg, credentials)
        assert fake_sessions.commands_on("nfs-1") == ["sudo rm -r /srv/nfs/staff/bob"]

    def test_failures_only_warn(self, cfg, credentials, fake_sessions):
        fake_sessions.script("node-a", rm=1)
        fake_sessions.unreachable.add("home")
        assert directories.delete_user_directories("alice1", cfg, credentials) is False
        assert fake_sessions.commands_on("node-b") == ["sudo rm -r /disk/users/alice1"]


class TestMissingCredential:
    @pytest.fixture
    def empty_password(self, cfg):
        prompts: list[str] = []

        def prompt(text, **kwargs):
            prompts.append(text)
            return "admin" if "username" in text else ""

        credentials = InteractiveSshCredential(cfg, prompt=prompt, echo=lambda _: None)
        return credentials, prompts

    def test_add_stops_at_first_node(self, compute_only, fake_sessions, alice, empty_password):
        credentials, prompts = empty_password
        fake_sessions.ask_credentials = True
        with pytest.raises(MissingCredential):
            directories.add_user_directories(alice, compute_only, credentials)
        assert fake_sessions.opened == ["node-a"]
        assert prompts.count("Enter your SSH password") == 1

    def test_delete_is_not_lenient_about_it(self, cfg, fake_sessions, empty_password):
        credentials, _ = empty_password
        fake_sessions.ask_credentials = True
        with pytest.raises(MissingCredential):
            directories.delete_user_directories("bob", cfg, credentials)
        assert fake_sessions.opened == ["home"]
