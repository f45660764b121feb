"""End-to-end tests for the theme build."""

import asyncio

import pytest
from unittest import mock

from fabrica.theme import ThemeBuild, run_build
from fabrica.assets.commands import CommandResult
from fabrica.config import DEFAULT_ACTIVATE_COMMAND, BuildConfig, Settings
from fabrica.tasks import Parallel, Sequence

from conftest import write


def tree(root):
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob('*')) if p.is_file()
    }


class TestBuild:
    """Tests for the build task."""

    def test_build_succeeds(self, project):
        result = run_build(project)
        assert result.ok, [str(f) for f in result.failures]

    def test_outputs(self, project):
        run_build(project)
        files = tree(project.theme)

        for expected in (
            'style.css', 'functions.php',
            'css/main.css', 'css/main.min.css', 'css/main.min.css.map',
            'js/main.js', 'js/main.min.js', 'js/lib.js', 'js/lib.min.js',
            'inc/a.php', 'inc/vendor/b.php', 'inc/c.php', 'inc/.env',
            'single.php', 'views/header.twig', 'views/single.twig',
            'img/logo.svg', 'fonts/icons.woff',
            'acf-json/group_1.json',
        ):
            assert expected in files, expected

    def test_staging_equals_live(self, project):
        run_build(project)
        assert tree(project.build) == tree(project.theme)

    def test_manifest(self, project):
        run_build(project)
        content = (project.theme / "functions.php").read_bytes().decode()
        lines = content.split('\r\n')
        assert lines[0] == '<?php'
        assert lines[1].endswith("'/inc/a.php');")
        assert lines[2].endswith("'/inc/c.php');")
        assert 'b.php' not in content

    def test_header(self, project):
        run_build(project)
        header = (project.build / "style.css").read_text()
        assert 'Theme Name: Acme' in header
        assert 'Theme URI: http://acme.dev' in header

    def test_external_state_round_trip(self, project):
        run_build(project)
        assert (project.src / "acf-json" / "group_1.json").exists()
        assert (project.theme / "acf-json" / "group_1.json").read_text() == '{"key": "group_1"}'

    def test_stale_outputs_removed(self, project):
        write(project.build / "css" / "old.css", "stale")
        run_build(project)
        assert not (project.build / "css" / "old.css").exists()

    def test_one_failing_asset_class(self, project):
        """A broken stylesheet fails styles only; siblings still write."""
        write(project.src / "assets/css/broken.css", "a { color: $undefined; }")
        result = run_build(project)

        assert result.failed_tasks == ['styles']
        assert (project.theme / "js" / "main.js").exists()
        assert (project.build / "functions.php").exists()
        assert not (project.theme / "css" / "main.css").exists()

    def test_missing_vendor_package_stops_build(self, project):
        write(project.src / "bower.json", '{"dependencies": {"slick": "*"}}')
        result = run_build(project)

        assert sorted(result.failed_tasks) == ['vendor-scripts', 'vendor-styles']
        assert not (project.theme / "js" / "main.js").exists()


class TestIncremental:
    """Rerunning pipelines after a build."""

    def test_unchanged_sources_write_nothing(self, project):
        theme = ThemeBuild(project)
        assert theme.run('build').ok

        for name in ('styles', 'scripts', 'views', 'fonts'):
            assert theme.run_pipeline(name).written == []

    def test_changed_source(self, project):
        theme = ThemeBuild(project)
        theme.run('build')
        write(project.src / "assets/js/nav.js", "app.nav = null;\n")

        report = theme.run_pipeline('scripts')
        assert 'js/main.js' in report.written
        assert theme.run_pipeline('styles').written == []


class TestGraph:
    """The task graph wiring."""

    def test_top_level_tasks(self, project):
        graph = ThemeBuild(project).graph
        for name in ('build', 'watch', 'install', 'refresh-external-state'):
            assert name in graph

    def test_build_shape(self, project):
        build = ThemeBuild(project).graph.get('build')
        assert isinstance(build, Sequence)
        assert build.children[:4] == [
            'clean-external-state', 'pull-external-state', 'clean', 'vendor',
        ]
        assets = build.children[4]
        assert isinstance(assets, Parallel)
        assert assets.children == [
            'theme-header', 'external-state', 'includes', 'controllers', 'views',
            'styles', 'scripts', 'images', 'fonts',
        ]

    def test_watch_and_install(self, project):
        graph = ThemeBuild(project).graph
        assert graph.get('watch').children == ['build', 'start-watcher']
        assert graph.get('install').children == ['build', 'activate']


class TestWatchBindings:
    """Which task a changed path triggers."""

    @pytest.mark.parametrize("rel,task", [
        ("assets/css/base.css", 'styles'),
        ("assets/js/nav.js", 'scripts'),
        ("includes/a.php", 'includes'),
        ("includes/.env", 'includes'),
        ("templates/controllers/single.php", 'controllers'),
        ("templates/views/single.twig", 'views'),
        ("assets/img/logo.svg", 'images'),
        ("assets/fonts/icons.woff", 'fonts'),
        ("bower.json", 'vendor'),
        ("bower_components/jquery/dist/jquery.js", 'vendor'),
    ])
    def test_source_paths(self, project, rel, task):
        theme = ThemeBuild(project)
        assert theme.watcher.tasks_for(project.src / rel) == [task]

    def test_live_external_state(self, project):
        theme = ThemeBuild(project)
        path = project.theme / "acf-json" / "group_2.json"
        assert theme.watcher.tasks_for(path) == ['refresh-external-state']


class TestActivate:
    """Tests for the install task."""

    def _config(self, project, command):
        settings = Settings(slug='acme', tools={'activate': command})
        return BuildConfig(root=project.root, settings=settings)

    def test_install(self, project):
        config = self._config(project, "echo activating {slug}")
        result = ThemeBuild(config).run('install')
        assert result.ok

    def test_activate_failure(self, project):
        config = self._config(project, 'echo no vm >&2; exit 1')
        result = ThemeBuild(config).run('install')
        assert result.failed_tasks == ['activate']
        assert 'no vm' in str(result.failures[0].error)

    def test_default_command(self, project):
        theme = ThemeBuild(project)
        with mock.patch('fabrica.theme.run_command') as run:
            run.return_value = CommandResult('vagrant ssh', 0, '', '')
            theme.activate()

        assert run.call_args[0][0] == DEFAULT_ACTIVATE_COMMAND
        assert run.call_args[1]['variables']['slug'] == 'acme'


class TestWatch:
    """The start-watcher task rebuilds changed asset classes."""

    def test_style_change_rebuilds_styles(self, project):
        theme = ThemeBuild(project)
        assert theme.run('build').ok
        theme.watcher.poll_interval = 0.01
        main_css = project.theme / "css" / "main.css"

        async def scenario():
            watching = asyncio.ensure_future(theme.graph.run('start-watcher'))
            try:
                while theme.watcher._snapshots is None:
                    await asyncio.sleep(0.01)
                write(project.src / "assets/css/layout.css", ".wrap {\n  margin: 1em;\n}\n")
                for _ in range(500):
                    if b"margin: 1em" in main_css.read_bytes():
                        break
                    await asyncio.sleep(0.01)
                assert theme.bus.subscriber_count == 1
            finally:
                watching.cancel()
                with pytest.raises(asyncio.CancelledError):
                    await watching

        asyncio.run(scenario())
        assert b"margin: 1em" in main_css.read_bytes()
        assert theme.bus.subscriber_count == 0

    def test_reload_server_runs_with_watcher(self, project):
        theme = ThemeBuild(project)
        server = mock.Mock()
        server.serve = mock.AsyncMock()
        theme.watcher.run = mock.AsyncMock(side_effect=RuntimeError("stop"))

        with mock.patch('fabrica.theme.reload_server', return_value=server) as factory:
            with pytest.raises(RuntimeError):
                asyncio.run(theme.start_watcher())

        factory.assert_called_once_with(theme.bus, 0)
        server.stop.assert_called_once_with()
        assert theme.bus.subscriber_count == 0
