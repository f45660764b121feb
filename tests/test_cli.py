"""Tests for the command line entry point."""

import runpy
import sys

import pytest
from unittest import mock

from fabrica.cli import main
from fabrica.tasks import TaskFailure, TaskResult

from conftest import write


class TestMain:
    """Tests for main()."""

    def test_build(self, project, capsys):
        code = main(['build', '--root', str(project.root)])
        assert code == 0
        assert (project.theme / "functions.php").exists()

    def test_settings_file_used(self, project):
        write(project.root / "custom.yml", "slug: other\n")
        main(['build', '--root', str(project.root), '--settings', 'custom.yml'])
        themes = project.root / "www" / "wordpress" / "wp-content" / "themes"
        assert (themes / "other" / "style.css").exists()

    def test_missing_settings(self, tmp_path, capsys):
        code = main(['build', '--root', str(tmp_path)])
        assert code == 1
        assert "Settings file not found" in capsys.readouterr().err

    def test_invalid_settings(self, tmp_path, capsys):
        write(tmp_path / "site.yml", "- not a mapping")
        assert main(['build', '--root', str(tmp_path)]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_task_failure(self, project, capsys):
        write(project.src / "assets/css/broken.css", "a { color: $nope; }")
        code = main(['build', '--root', str(project.root)])
        assert code == 1
        assert "styles" in capsys.readouterr().err

    def test_default_task_is_watch(self, project):
        with mock.patch('fabrica.theme.ThemeBuild.run', return_value=TaskResult('watch')) as run:
            assert main(['--root', str(project.root)]) == 0
        run.assert_called_once_with('watch')

    def test_interrupt_exits_cleanly(self, project):
        with mock.patch('fabrica.theme.ThemeBuild.run', side_effect=KeyboardInterrupt):
            assert main(['watch', '--root', str(project.root)]) == 0

    def test_failed_result(self, project, capsys):
        result = TaskResult('install', [TaskFailure('activate', RuntimeError("no vm"))])
        with mock.patch('fabrica.theme.ThemeBuild.run', return_value=result):
            assert main(['install', '--root', str(project.root)]) == 1
        assert "activate" in capsys.readouterr().err

    def test_list(self, project, capsys):
        assert main(['--list', '--root', str(project.root)]) == 0
        out = capsys.readouterr().out.split()
        assert 'build' in out
        assert 'refresh-external-state' in out

    def test_module_entry_point(self, project, capsys, monkeypatch):
        """python -m fabrica runs main() and exits with its code."""
        monkeypatch.setattr(sys, 'argv', ['fabrica', '--list', '--root', str(project.root)])
        with pytest.raises(SystemExit) as exc:
            runpy.run_module('fabrica', run_name='__main__')
        assert exc.value.code == 0
        assert 'build' in capsys.readouterr().out.split()

    def test_unknown_task(self, project):
        with pytest.raises(SystemExit):
            main(['deploy', '--root', str(project.root)])

    def test_log_file(self, project):
        log_file = project.root / "build.log"
        main(['build', '--root', str(project.root), '--log-file', str(log_file), '-v'])
        assert "Finished 'build'" in log_file.read_text()
