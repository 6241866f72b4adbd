"""Tests for user identity and group membership."""

from types import SimpleNamespace
from unittest.mock import patch

from olog_directory.config import DirectoryConfig
from olog_directory.users import (
    OSUserContext,
    StaticUserContext,
    UserContext,
    make_user_context,
)

GROUPS = {100: "alice", 200: "ops", 300: "olog-admins"}


def fake_getgrgid(gid):
    if gid not in GROUPS:
        raise KeyError(gid)
    return SimpleNamespace(gr_name=GROUPS[gid])


def fake_getpwnam(user):
    if user != "alice":
        raise KeyError(user)
    return SimpleNamespace(pw_gid=100)


def os_accounts(gids):
    """Patch the OS account database so alice belongs to ``gids``."""
    return (
        patch("olog_directory.users.pwd.getpwnam", side_effect=fake_getpwnam),
        patch("olog_directory.users.grp.getgrgid", side_effect=fake_getgrgid),
        patch("olog_directory.users.os.getgrouplist", return_value=gids),
    )


class TestStaticUserContext:
    """Tests for the configured user context."""

    def test_membership(self):
        users = StaticUserContext(user="alice", groups=["ops"])
        assert isinstance(users, UserContext)
        assert users.current_user_name() == "alice"
        assert users.is_in_group("ops")
        assert not users.is_in_group("sci")

    def test_missing_group(self):
        users = StaticUserContext(user="alice", groups=["ops"])
        assert not users.is_in_group(None)
        assert not users.is_in_group("")

    def test_admin(self):
        users = StaticUserContext(user="root", admin=True)
        assert users.is_in_group("sci")
        assert users.is_in_group(None)


class TestOSUserContext:
    """Tests for the OS-backed user context."""

    def test_group_names(self):
        pw, gr, gl = os_accounts([100, 200, 999])
        with pw, gr, gl:
            users = OSUserContext(user="alice")
            assert users.group_names() == {"alice", "ops"}
            assert users.is_in_group("ops")
            assert not users.is_in_group("sci")

    def test_unknown_user(self):
        pw, gr, gl = os_accounts([])
        with pw, gr, gl:
            users = OSUserContext(user="mallory")
            assert users.group_names() == set()
            assert not users.is_in_group("ops")

    def test_admin_groups(self):
        pw, gr, gl = os_accounts([100, 300])
        with pw, gr, gl:
            users = OSUserContext(user="alice", admin_groups=["olog-admins"])
            assert users.is_in_group("sci")

    def test_membership_is_not_cached(self):
        pw, gr, gl = os_accounts([100, 200])
        with pw, gr, gl as getgrouplist:
            users = OSUserContext(user="alice")
            assert users.is_in_group("ops")
            getgrouplist.return_value = [100]
            assert not users.is_in_group("ops")

    def test_login_name(self):
        with patch("olog_directory.users.getpass.getuser", return_value="bob"):
            assert OSUserContext().current_user_name() == "bob"


class TestMakeUserContext:
    """Tests for building the user context from configuration."""

    def test_static(self, temp_project):
        config = DirectoryConfig(project_root=temp_project, user="alice", groups=["ops"])
        users = make_user_context(config)
        assert isinstance(users, StaticUserContext)
        assert users.current_user_name() == "alice"
        assert not users.admin

    def test_static_admin(self, temp_project):
        config = DirectoryConfig(
            project_root=temp_project, user="root", groups=["wheel"], admin_groups=["wheel"]
        )
        assert make_user_context(config).is_in_group("sci")

    def test_os(self, temp_project):
        config = DirectoryConfig(project_root=temp_project, user="alice", admin_groups=["olog-admins"])
        users = make_user_context(config)
        assert isinstance(users, OSUserContext)
        assert users.admin_groups == {"olog-admins"}
