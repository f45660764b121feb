"""Asset classes and the pipelines that build them.

Example:
    from fabrica.assets import AssetPipeline, default_asset_classes

    classes = default_asset_classes(config)
    pipeline = AssetPipeline(classes['styles'], config.src, sink, bus)
    report = pipeline.run()

Classes:
    SourceFile: A discovered source file
    Artifact: An output file travelling through a pipeline
    AssetClass: Globs, destination and stages of one kind of asset
    AssetPipeline: Runs one AssetClass through the sink
    PipelineReport: What a pipeline run wrote and skipped

Functions:
    discover: Expand glob patterns under a root
    default_asset_classes: The asset classes of a theme project
    resolve_main_files: Vendor library files from Bower metadata
"""

from .sources import SourceFile, discover, glob_base, glob_to_regex, matches
from .stages import (
    Artifact, LintFinding, StageContext, Stage, FilterStage, LintStage,
    ConcatStage, TransformStage, MinifyStage, RenameStage, FlattenStage,
    SourceMapStage, run_stages,
)
from .classes import AssetClass, default_asset_classes
from .pipeline import AssetPipeline, PipelineReport
from .vendor import resolve_main_files

__all__ = [
    # Sources
    'SourceFile', 'discover', 'glob_base', 'glob_to_regex', 'matches',
    # Stages
    'Artifact', 'LintFinding', 'StageContext', 'Stage', 'FilterStage',
    'LintStage', 'ConcatStage', 'TransformStage', 'MinifyStage',
    'RenameStage', 'FlattenStage', 'SourceMapStage', 'run_stages',
    # Pipelines
    'AssetClass', 'default_asset_classes', 'AssetPipeline', 'PipelineReport',
    'resolve_main_files',
]
