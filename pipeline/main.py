import argparse
import sys

from pipeline.config import PipelineConfig, load_config
from pipeline.workflow import ClassificationPipeline
from models.classifiers import DecisionTreeClassifier
from visualization.reports import format_comparison, format_evaluation, format_tree, format_tuning
from utils.exceptions import PipelineError


def build_parser():
    parser = argparse.ArgumentParser(
        description="Train and evaluate classifiers on a labeled tabular dataset."
    )
    parser.add_argument('--config', default=None, help="YAML configuration file (default: config.yaml if present)")
    parser.add_argument('--data', default=None, help="Dataset path or URL (overrides data.source)")
    parser.add_argument('--target', default=None, help="Target column (overrides data.target)")
    parser.add_argument('--output', default=None, help="Output directory (overrides output_dir)")
    parser.add_argument('--seed', type=int, default=None, help="Random seed (overrides split.seed)")
    parser.add_argument('--format', choices=['excel', 'csv'], default=None, help="Report format")
    parser.add_argument('--no-plots', action='store_true', help="Skip HTML plots")
    parser.add_argument('--quiet', action='store_true', help="Only print the final reports")
    return parser


def resolve_config(args):
    if args.config:
        config = PipelineConfig.from_yaml(args.config)
    else:
        try:
            config = load_config()
        except FileNotFoundError:
            config = PipelineConfig()

    if args.data:
        config.data.source = args.data
    if args.target:
        config.data.target = args.target
    if args.output:
        config.output_dir = args.output
    if args.seed is not None:
        config.split.seed = args.seed
    if args.format:
        config.export_format = args.format
    if args.no_plots:
        config.create_plots = False
    if args.quiet:
        config.verbose = False
    config.validate()
    return config


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        config = resolve_config(args)
        print("Starting pipeline...")
        result = ClassificationPipeline(config).run()
    except (PipelineError, FileNotFoundError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    for name, run in result.runs.items():
        print()
        print(format_evaluation(run.evaluation, title=f"Evaluation: {name}"))
        if run.tuning is not None:
            print()
            print(format_tuning(run.tuning))
        if run.model.variant == DecisionTreeClassifier.name:
            print()
            print(format_tree(run.model))

    print()
    print(format_comparison(result.comparison))
    if result.output_path:
        print(f"\nReports written to: {result.output_path}")
    print("\nPipeline finished.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
