"""Composition of a theme build: pipelines, tasks and the watcher.

Tasks:
    build                   clean-external-state, pull-external-state, clean,
                            vendor, then every asset class in parallel
    watch                   build, then start-watcher
    install                 build, then activate
    refresh-external-state  clean-external-state, pull-external-state
"""

import asyncio
from functools import partial
from typing import Dict, List, Optional

from .assets.classes import AssetClass, default_asset_classes
from .assets.pipeline import AssetPipeline, PipelineReport
from .assets.commands import run_command
from .assets.vendor import resolve_main_files
from .config import DEFAULT_ACTIVATE_COMMAND, BuildConfig
from .devserver import reload_server
from .exceptions import ExternalProcessFailure
from .external_state import ACF_PATTERN, ExternalState
from .logging import get_logger
from .manifest import ManifestGenerator, write_header
from .reload import ReloadBus
from .sink import DualSink
from .tasks import Leaf, Parallel, Sequence, TaskGraph, TaskResult
from .watcher import WatchBinding, Watcher

logger = get_logger('theme')

# Vendor classes share one resolution of bower main files, split by type
VENDOR_SUFFIXES = {
    'vendor-scripts': '.js',
    'vendor-styles': '.css',
}

ASSET_TASKS = ('includes', 'controllers', 'views', 'styles', 'scripts', 'images', 'fonts')


class ThemeBuild:
    """Everything needed to build and watch one theme project.

    Args:
        config: Build configuration
        sink: Destination writer; defaults to the staging and live roots
        bus: Reload notifications
        asset_classes: Asset class definitions keyed by name
    """

    def __init__(self, config: BuildConfig, sink: Optional[DualSink] = None,
                 bus: Optional[ReloadBus] = None,
                 asset_classes: Optional[Dict[str, AssetClass]] = None):
        self.config = config
        self.sink = sink if sink is not None else DualSink.from_roots(config.destinations)
        self.bus = bus if bus is not None else ReloadBus()
        self.asset_classes = asset_classes if asset_classes is not None else default_asset_classes(config)
        self.external_state = ExternalState(config.src, config.theme)
        self.manifest = ManifestGenerator()
        self.pipelines: Dict[str, AssetPipeline] = {
            name: self._pipeline(cls) for name, cls in self.asset_classes.items()
        }
        self.reports: Dict[str, PipelineReport] = {}
        self.graph = self._build_graph()
        self.watcher = Watcher(self._watch_bindings(), self.graph.run,
                               poll_interval=config.settings.poll_interval)

    def _vendor_sources(self, name: str, suffix: str):
        return [s for s in resolve_main_files(self.config.src, name) if s.path.suffix == suffix]

    def _pipeline(self, cls: AssetClass) -> AssetPipeline:
        sources = None
        suffix = VENDOR_SUFFIXES.get(cls.name)
        if suffix is not None:
            sources = partial(self._vendor_sources, cls.name, suffix)
        return AssetPipeline(cls, self.config.src, self.sink, bus=self.bus, sources=sources)

    def _build_graph(self) -> TaskGraph:
        leaves = [
            Leaf('clean-external-state', self.clean_external_state,
                 doc="Delete the local ACF JSON mirror"),
            Leaf('pull-external-state', self.pull_external_state,
                 doc="Copy ACF JSON from the live theme"),
            Leaf('clean', self.clean, doc="Remove both output roots"),
            Leaf('theme-header', self.theme_header, doc="Write the style.css header"),
            Leaf('external-state', self.regenerate_external_state,
                 doc="Write the ACF JSON mirror into both roots"),
            Leaf('activate', self.activate, doc="Activate the theme in the CMS"),
            Leaf('start-watcher', self.start_watcher, doc="Watch sources and rebuild"),
        ]
        for name in self.pipelines:
            leaves.append(Leaf(name, partial(self.run_pipeline, name)))

        vendor = [name for name in VENDOR_SUFFIXES if name in self.pipelines]
        assets = ['theme-header', 'external-state'] + [n for n in ASSET_TASKS if n in self.pipelines]

        return TaskGraph(leaves + [
            Parallel('vendor', vendor),
            Sequence('refresh-external-state', ['clean-external-state', 'pull-external-state']),
            Sequence('build', [
                'clean-external-state',
                'pull-external-state',
                'clean',
                'vendor',
                Parallel('assets', assets),
            ]),
            Sequence('watch', ['build', 'start-watcher']),
            Sequence('install', ['build', 'activate']),
        ])

    def _watch_bindings(self) -> List[WatchBinding]:
        bindings = []
        vendor_patterns: List[str] = []
        for name, cls in self.asset_classes.items():
            if name in VENDOR_SUFFIXES:
                vendor_patterns.extend(p for p in cls.patterns if p not in vendor_patterns)
            else:
                bindings.append(WatchBinding(self.config.src, tuple(cls.patterns), name))
        if vendor_patterns:
            bindings.append(WatchBinding(self.config.src, tuple(vendor_patterns), 'vendor'))
        bindings.append(WatchBinding(self.config.theme, (ACF_PATTERN,), 'refresh-external-state'))
        return bindings

    # Task actions

    def clean_external_state(self) -> None:
        self.external_state.clean()

    def pull_external_state(self) -> bool:
        return self.external_state.pull()

    def clean(self) -> None:
        self.sink.clean()
        for pipeline in self.pipelines.values():
            pipeline.tracker.forget()

    def theme_header(self) -> None:
        write_header(self.config.settings, self.sink)

    def regenerate_external_state(self) -> List[str]:
        return self.external_state.regenerate(self.sink)

    def run_pipeline(self, name: str) -> PipelineReport:
        pipeline = self.pipelines[name]
        report = pipeline.run()
        self.reports[name] = report
        if name == 'includes':
            self.manifest.write(pipeline.discover(), self.sink)
        return report

    def activate(self) -> None:
        settings = self.config.settings
        template = settings.tool('activate') or DEFAULT_ACTIVATE_COMMAND
        result = run_command(template, variables={'slug': settings.slug,
                                                  'hostname': settings.hostname})
        if not result:
            raise ExternalProcessFailure(result.command, result.returncode, result.stderr)
        logger.info("activated theme '%s'", settings.slug)

    async def _log_reloads(self, queue: asyncio.Queue) -> None:
        while True:
            event = await queue.get()
            kind = 'inject' if event.inject else 'reload'
            logger.info("%s: %s", kind, ', '.join(event.paths) or event.asset_class)

    async def start_watcher(self) -> None:
        self.bus.start(loop=asyncio.get_running_loop())
        queue, unsubscribe = self.bus.subscribe()
        background = [asyncio.ensure_future(self._log_reloads(queue))]
        server = reload_server(self.bus, self.config.settings.reload_port)
        if server is not None:
            background.append(asyncio.ensure_future(server.serve()))
        try:
            await self.watcher.run()
        finally:
            if server is not None:
                server.stop()
            for task in background:
                task.cancel()
            unsubscribe()
            self.bus.stop()

    def run(self, task: str) -> TaskResult:
        """Run a task to completion, logging every failure."""
        result = self.graph.run_sync(task)
        for failure in result.failures:
            logger.error("task '%s' failed: %s", failure.task, failure.error)
        return result


def run_build(config: BuildConfig) -> TaskResult:
    """Build the theme once."""
    return ThemeBuild(config).run('build')


def run_watch(config: BuildConfig) -> TaskResult:
    """Build the theme, then rebuild on change until interrupted."""
    return ThemeBuild(config).run('watch')
