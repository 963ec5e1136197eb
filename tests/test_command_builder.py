"""Tests for sacctmgr command rendering."""

from __future__ import annotations

from usermgmt.services.command_builder import CommandBuilder


class TestAdd:
    def test_remote_add_renders_two_commands(self):
        builder = CommandBuilder.new_add(
            "alice1", "student", "basic", ["interactive", "basic"],
        )
        assert builder.sacctmgr_path("/usr/bin/sacctmgr").remote_commands() == [
            "/usr/bin/sacctmgr add User alice1 Account=student",
            "/usr/bin/sacctmgr modify User alice1 set "
            "QOS=interactive,basic DefaultQOS=basic",
        ]

    def test_qos_precedes_default_qos(self):
        builder = CommandBuilder.new_add("bob", "staff", "advanced", ["advanced"])
        modify = builder.remote_commands()[1]
        assert modify.index("QOS=advanced") < modify.index("DefaultQOS=advanced")

    def test_default_path_is_sacctmgr(self):
        builder = CommandBuilder.new_delete("bob")
        assert builder.remote_commands() == ["sacctmgr delete User bob"]


class TestImmediate:
    def test_immediate_appended_to_every_command(self):
        builder = CommandBuilder.new_add("alice1", "student", "basic", ["basic"])
        commands = builder.immediate(True).remote_commands()
        assert len(commands) == 2
        assert all(cmd.endswith(" --immediate") for cmd in commands)

    def test_immediate_off_by_default(self):
        assert "--immediate" not in CommandBuilder.new_delete("bob").remote_commands()[0]

    def test_immediate_in_local_args(self):
        local = CommandBuilder.new_delete("bob").immediate(True).local_commands()
        assert local[0].args[-1] == "--immediate"


class TestModify:
    def test_all_keys_in_one_set_clause(self):
        builder = CommandBuilder.new_modify(
            "bob", {"QOS": ["a", "b"], "DefaultQOS": ["a"], "Account": ["staff"]},
        )
        assert builder.remote_commands() == [
            "sacctmgr modify User bob set QOS=a,b DefaultQOS=a Account=staff",
        ]

    def test_empty_value_list(self):
        builder = CommandBuilder.new_modify("bob", {"QOS": []})
        assert builder.remote_commands() == ["sacctmgr modify User bob set QOS="]

    def test_qos_and_default_qos(self):
        builder = CommandBuilder.new_modify_qos_default_qos(
            "bob", "advanced", ["interactive", "advanced"],
        )
        assert builder.local_commands()[0].argv == [
            "sacctmgr",
            "modify",
            "User",
            "bob",
            "set",
            "QOS=interactive,advanced",
            "DefaultQOS=advanced",
        ]


class TestShow:
    def test_show(self):
        assert CommandBuilder.new_show(False).remote_commands() == [
            "sacctmgr show assoc format=User%30,Account,DefaultQOS,QOS%80",
        ]

    def test_show_parsable(self):
        argv = CommandBuilder.new_show(True).local_commands()[0].argv
        assert argv[:3] == ["sacctmgr", "--parsable", "show"]


class TestQuoting:
    def test_remote_arguments_are_shell_quoted(self):
        builder = CommandBuilder.new_delete("bob; rm -rf /")
        assert builder.remote_commands() == ["sacctmgr delete User 'bob; rm -rf /'"]

    def test_local_arguments_are_untouched(self):
        builder = CommandBuilder.new_delete("bob; rm -rf /")
        assert builder.local_commands()[0].args == ("delete", "User", "bob; rm -rf /")
