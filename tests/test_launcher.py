"""Tests for locating the application and building launch/shell commands."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from rdctl import launcher
from rdctl.errors import AppNotFoundError, RDCtlError
from rdctl.launcher import (
    add_lima_bin_to_path,
    check_existence,
    find_app_path,
    launch_app,
    launch_command,
    setup_lima_home,
    shell_command,
)


def _make_exe(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text('#!/bin/sh\n', encoding='utf-8')
    path.chmod(0o755)
    return path


def test_check_existence_mode_bits(tmp_path: Path) -> None:
    plain = tmp_path / 'plain'
    plain.write_text('', encoding='utf-8')
    plain.chmod(0o644)
    exe = _make_exe(tmp_path / 'exe')
    assert check_existence(tmp_path / 'missing') == ''
    assert check_existence(plain) == str(plain)
    assert check_existence(plain, 0o111) == ''
    assert check_existence(exe, 0o111) == str(exe)
    # Directories only pass without mode bits.
    assert check_existence(tmp_path) == str(tmp_path)
    assert check_existence(tmp_path, 0o111) == ''


def test_find_app_path_windows_local_app_data(tmp_path: Path) -> None:
    exe = _make_exe(
        tmp_path / 'Local' / 'Programs' / 'Rancher Desktop' / 'Rancher Desktop.exe'
    )
    env = {'LOCALAPPDATA': str(tmp_path / 'Local')}
    assert find_app_path('windows', env) == str(exe)


def test_find_app_path_windows_home_fallback(tmp_path: Path) -> None:
    exe = _make_exe(
        tmp_path
        / 'AppData'
        / 'Local'
        / 'Programs'
        / 'Rancher Desktop'
        / 'Rancher Desktop.exe'
    )
    assert find_app_path('windows', {'HOME': str(tmp_path)}) == str(exe)
    with pytest.raises(AppNotFoundError, match='--path'):
        find_app_path('windows', {})


def test_find_app_path_linux_uses_path(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(launcher, 'LINUX_APP_PATH', str(tmp_path / 'nope'))
    exe = _make_exe(tmp_path / 'bin' / 'rancher-desktop')
    assert find_app_path('linux', {'PATH': str(tmp_path / 'bin')}) == str(exe)


def test_find_app_path_linux_prefers_opt(monkeypatch, tmp_path: Path) -> None:
    opt = _make_exe(tmp_path / 'opt' / 'rancher-desktop')
    monkeypatch.setattr(launcher, 'LINUX_APP_PATH', str(opt))
    assert find_app_path('linux', {'PATH': ''}) == str(opt)


def test_find_app_path_unknown_os() -> None:
    with pytest.raises(AppNotFoundError, match="Don't know how to find"):
        find_app_path('plan9', {})


def test_launch_command_per_os() -> None:
    args = ['--kubernetes-version', '1.23.7']
    assert launch_command('/Applications/Rancher Desktop.app', args, 'darwin') == [
        'open',
        '-a',
        '/Applications/Rancher Desktop.app',
        '--args',
        '--kubernetes-version',
        '1.23.7',
    ]
    assert launch_command('/Applications/X.app', [], 'darwin') == ['open', '-a', '/Applications/X.app']
    assert launch_command('/opt/rd', args, 'linux') == ['/opt/rd', *args]


def test_launch_app_runs_command(monkeypatch, capsys) -> None:
    calls = []
    monkeypatch.setattr(
        'rdctl.launcher.run_cmd', lambda cmd, **kwargs: calls.append((cmd, kwargs))
    )
    cmd = launch_app('/opt/rd', ['--kubernetes-enabled=false'], system='linux')
    assert cmd == ['/opt/rd', '--kubernetes-enabled=false']
    assert calls == [(cmd, {'check': True, 'capture': False})]
    assert 'About to launch /opt/rd --kubernetes-enabled=false' in capsys.readouterr().err


def test_launch_app_dry_run(monkeypatch) -> None:
    def _fail(*args, **kwargs):
        raise AssertionError('should not run')

    monkeypatch.setattr('rdctl.launcher.run_cmd', _fail)
    launch_app('/opt/rd', [], system='linux', dry_run=True)


def test_add_lima_bin_to_path(tmp_path: Path) -> None:
    exe = _make_exe(tmp_path / 'resources' / 'bin' / 'rdctl')
    lima_bin = tmp_path / 'resources' / 'lima' / 'bin'
    env = {'PATH': str(tmp_path / 'empty')}
    with pytest.raises(AppNotFoundError, match='No executable limactl'):
        add_lima_bin_to_path(env, executable=str(exe))
    _make_exe(lima_bin / 'limactl')
    add_lima_bin_to_path(env, executable=str(exe))
    assert env['PATH'].split(os.pathsep)[0] == str(lima_bin.resolve())


def test_setup_lima_home(tmp_path: Path) -> None:
    env = {'HOME': str(tmp_path)}
    with pytest.raises(RDCtlError, match='LIMA_HOME'):
        setup_lima_home(env, 'linux')
    lima_home = tmp_path / '.local' / 'share' / 'rancher-desktop' / 'lima'
    lima_home.mkdir(parents=True)
    setup_lima_home(env, 'linux')
    assert env['LIMA_HOME'] == str(lima_home)

    env = {'HOME': str(tmp_path), 'LIMA_HOME': '/already/set'}
    setup_lima_home(env, 'darwin')
    assert env['LIMA_HOME'] == '/already/set'


def test_setup_lima_home_not_a_directory(tmp_path: Path) -> None:
    target = tmp_path / 'Library' / 'Application Support' / 'rancher-desktop' / 'lima'
    target.parent.mkdir(parents=True)
    target.write_text('', encoding='utf-8')
    with pytest.raises(RDCtlError, match="isn't a directory"):
        setup_lima_home({'HOME': str(tmp_path)}, 'darwin')


def test_shell_command_windows() -> None:
    cmd, _ = shell_command(['ls'], system='windows', cd='/mnt/c', env={})
    assert cmd == ['wsl', '--cd', '/mnt/c', 'ls']
    cmd, _ = shell_command([], system='windows', env={})
    assert cmd == ['wsl']


def test_shell_command_lima(tmp_path: Path) -> None:
    lima_bin = tmp_path / 'lima' / 'bin'
    _make_exe(lima_bin / 'limactl')
    lima_home = tmp_path / 'home' / '.local' / 'share' / 'rancher-desktop' / 'lima'
    lima_home.mkdir(parents=True)
    env = {'PATH': str(lima_bin), 'HOME': str(tmp_path / 'home')}
    cmd, run_env = shell_command(['echo', 'a ; b'], system='linux', env=env)
    assert cmd == ['limactl', 'shell', '0', 'echo', 'a ; b']
    assert run_env['LIMA_HOME'] == str(lima_home)
    assert 'LIMA_HOME' not in env
