#!/usr/bin/env python3
"""
Command-line interface for devnet-chaos
Provides commands for planning experiments, running them against an enclave, and validating configuration files.
"""
import sys
import json
import signal
import argparse
import logging
import traceback
import yaml
from pathlib import Path
from typing import Any, Dict, List
from datetime import datetime
from .main import DevnetChaos
from .models import TestArtifact
from .errors import DevnetChaosError, ExperimentCancelled, PlatformUnavailable, ConfigTopologyMismatch
from .planner import PlannerConfigLoader
from .experiment import ExperimentConfigLoader, CancellationToken, get_error_handler, generate_report
from .experiment.artifacts import artifact_to_dict, DEFAULT_ARTIFACT_DIR
from .experiment.config import experiment_to_dict
from .enclave.lifecycle import DEFAULT_SETTLE_DELAY
from .experiment.sequencer import DEFAULT_POLL_INTERVAL

VERBOSITY_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}


class ChaosCLI:
    """Command-line interface for devnet-chaos"""

    def __init__(self, chaos: DevnetChaos = None, cancellation: CancellationToken = None):
        self.cancellation = cancellation or CancellationToken()
        self._chaos = chaos

    @property
    def chaos(self) -> DevnetChaos:
        if self._chaos is None:
            self._chaos = DevnetChaos(cancellation=self.cancellation)
        return self._chaos

    def plan(self, args) -> int:
        """Compose a test plan from a planner config and write the experiment file"""
        self._print_header(f"Planning: {args.config}")

        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: Planner config not found: {args.config}")
            print(f"\nExample: devnet-chaos plan examples/clock_skew_geth.yaml -o experiment.yaml")
            return 1

        try:
            config = PlannerConfigLoader.load_from_file(config_path)
            if args.seed is not None:
                config.seed = args.seed
            plan = self.chaos.plan(config)
        except DevnetChaosError as e:
            print(f"Error: Planning failed: {e}")
            print(f"\nTry validating your planner config first: devnet-chaos validate {args.config}")
            return 1

        output = ExperimentConfigLoader.save(plan.experiment, args.output)

        print(f"Topology ({len(plan.topology)} nodes):")
        for node in plan.topology:
            print(f"  {node.fingerprint()}")
        print(f"\nTests: {len(plan.tests)}")
        if args.verbose:
            for i, test in enumerate(plan.tests, 1):
                print(f"  {i}. {test.name} ({len(test.plan_steps)} steps)")
        print(f"\nExperiment written to {output}")
        return 0

    def run(self, args) -> int:
        """Prepare the enclave and run an experiment"""
        self._print_header(f"Experiment: {args.file}")

        experiment_path = Path(args.file)
        if not experiment_path.exists():
            print(f"Error: Experiment file not found: {args.file}")
            print(f"\nGenerate one with: devnet-chaos plan <planner.yaml> -o {args.file}")
            return 1

        try:
            experiment = ExperimentConfigLoader.load_from_file(experiment_path)
        except DevnetChaosError as e:
            print(f"Error: Failed to load experiment: {e}")
            print(f"\nTry validating the file first: devnet-chaos validate {args.file} --experiment")
            return 1

        print(f"Enclave: {experiment.enclave_name} (namespace {experiment.enclave_namespace})")
        print(f"Package: {experiment.kurtosis_package_id}")
        print(f"Tests: {len(experiment.chaos_config.tests)}")
        print()

        try:
            artifacts = self.chaos.run_experiment(experiment, restart=args.restart)
        except ExperimentCancelled as e:
            print(f"\nExperiment cancelled: {e}")
            return 130
        except ConfigTopologyMismatch as e:
            print(f"\nError: {e}")
            print(f"\nRerun with --restart to rebuild the network: devnet-chaos run {args.file} --restart")
            return 1
        except PlatformUnavailable as e:
            print(f"\nError: {e}")
            return 1
        except DevnetChaosError as e:
            print(f"\nError: Experiment aborted: {e}")
            self._print_error_summary()
            if args.verbose:
                traceback.print_exc()
            return 1

        print()
        print(generate_report(artifacts))

        if args.output:
            self._save_results(artifacts, args.output, args.format)

        return 0 if artifacts and all(a.passed for a in artifacts) else 1

    def validate(self, args) -> int:
        """Validate a planner config, or an experiment file with --experiment"""
        self._print_header(f"Validating: {args.file}")

        path = Path(args.file)
        if not path.exists():
            print(f"Error: File not found: {args.file}")
            print(f"\nExample: devnet-chaos validate examples/clock_skew_geth.yaml")
            return 1

        try:
            if args.experiment:
                experiment = ExperimentConfigLoader.load_from_file(path)
                print("Experiment file loaded successfully")
                print(f"Enclave: {experiment.enclave_name}")
                print(f"Participants: {len(experiment.network_config.participants)}")
                print(f"Tests: {len(experiment.chaos_config.tests)}")
                if args.verbose:
                    print(yaml.dump(experiment_to_dict(experiment), default_flow_style=False, sort_keys=False))
                print("\nExperiment file is valid!")
                return 0

            config = PlannerConfigLoader.load_from_file(path)
            print("Planner config loaded successfully")
            errors = PlannerConfigLoader.list_errors(config)
            if errors:
                print("\nError: Validation failed:")
                for error in errors:
                    print(f"  - {error}")
                return 1

            print(f"Fault type: {config.fault_config.fault_type}")
            print(f"Target client: {config.fault_config.target_client}")
            print(f"Execution clients: {', '.join(c.type for c in config.execution_clients)}")
            print(f"Consensus clients: {', '.join(c.type for c in config.consensus_clients)}")
            print("\nPlanner config is valid!")
            return 0

        except DevnetChaosError as e:
            print(f"\nError: Validation failed: {e}")
            print(f"\nCheck the file syntax. See examples in the examples/ directory.")
            return 1

    def _print_header(self, title: str):
        """Print formatted header"""
        print()
        print("=" * 80)
        print(title)
        print("=" * 80)
        print()

    def _print_error_summary(self):
        summary = get_error_handler().get_error_summary()
        if summary['total_errors']:
            categories = ", ".join(f"{k}={v}" for k, v in summary['by_category'].items())
            print(f"Errors recorded: {summary['total_errors']} ({categories})")

    def _save_results(self, artifacts: List[TestArtifact], output_path: str, format: str):
        """Save test artifacts to file"""
        output = Path(output_path)
        output.parent.mkdir(parents=True, exist_ok=True)

        data: Dict[str, Any] = {
            'timestamp': datetime.now().isoformat(),
            'total_tests': len(artifacts),
            'passed': sum(1 for a in artifacts if a.passed),
            'failed': sum(1 for a in artifacts if not a.passed),
            'results': [artifact_to_dict(a) for a in artifacts],
        }

        with open(output, 'w') as f:
            if format == 'json':
                json.dump(data, f, indent=2)
            else:
                yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        print(f"\nResults saved to {output_path}")


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI"""
    parser = argparse.ArgumentParser(
        prog='devnet-chaos',
        description='devnet-chaos - Plan and run chaos experiments against ephemeral Ethereum devnets',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Compose a test plan from a planner config
  devnet-chaos plan examples/clock_skew_geth.yaml -o experiment.yaml

  # Run the experiment, reusing a matching running network
  devnet-chaos run experiment.yaml

  # Rebuild the network before running
  devnet-chaos run experiment.yaml --restart

  # Save per-test results
  devnet-chaos run experiment.yaml --output results.json

  # Validate a planner config or an experiment file
  devnet-chaos validate examples/clock_skew_geth.yaml
  devnet-chaos validate experiment.yaml --experiment
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version='devnet-chaos 0.1.0'
    )
    parser.add_argument(
        '--verbosity',
        choices=list(VERBOSITY_LEVELS),
        default='info',
        help='Log level (default: info)'
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    plan_parser = subparsers.add_parser(
        'plan',
        help='Compose a topology and test suite from a planner config'
    )
    plan_parser.add_argument(
        'config',
        help='Path to planner YAML file'
    )
    plan_parser.add_argument(
        '-o', '--output',
        default='experiment.yaml',
        help='Where to write the experiment file (default: experiment.yaml)'
    )
    plan_parser.add_argument(
        '--seed',
        type=int,
        help='Seed for topology padding, overrides the config'
    )
    plan_parser.add_argument(
        '--verbose',
        action='store_true',
        help='List every generated test'
    )

    run_parser = subparsers.add_parser(
        'run',
        help='Run an experiment against its enclave'
    )
    run_parser.add_argument(
        'file',
        help='Path to experiment file (YAML or JSON)'
    )
    run_parser.add_argument(
        '--restart',
        action='store_true',
        help='Destroy and rebuild the enclave before running'
    )
    run_parser.add_argument(
        '--settle-delay',
        type=float,
        default=DEFAULT_SETTLE_DELAY,
        help=f'Seconds to wait after destroying an enclave (default: {DEFAULT_SETTLE_DELAY:g})'
    )
    run_parser.add_argument(
        '--poll-interval',
        type=float,
        default=DEFAULT_POLL_INTERVAL,
        help=f'Seconds between fault status queries (default: {DEFAULT_POLL_INTERVAL:g})'
    )
    run_parser.add_argument(
        '--artifact-dir',
        default=DEFAULT_ARTIFACT_DIR,
        help=f'Directory for test artifacts (default: {DEFAULT_ARTIFACT_DIR})'
    )
    run_parser.add_argument(
        '--output',
        type=str,
        help='Path to save test results'
    )
    run_parser.add_argument(
        '--format',
        choices=['json', 'yaml'],
        default='json',
        help='Output format for results (default: json)'
    )
    run_parser.add_argument(
        '--verbose',
        action='store_true',
        help='Print tracebacks on failure'
    )

    validate_parser = subparsers.add_parser(
        'validate',
        help='Validate a planner config or experiment file'
    )
    validate_parser.add_argument(
        'file',
        help='Path to the file to validate'
    )
    validate_parser.add_argument(
        '--experiment',
        action='store_true',
        help='Treat the file as an experiment instead of a planner config'
    )
    validate_parser.add_argument(
        '--verbose',
        action='store_true',
        help='Print the parsed experiment'
    )

    return parser


def main(argv=None):
    """Main entry point for CLI"""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.getLogger().setLevel(VERBOSITY_LEVELS[args.verbosity])

    if not args.command:
        print("Error: No command specified\n")
        parser.print_help()
        print("\nCommon commands:")
        print("  devnet-chaos plan <planner.yaml> -o experiment.yaml   # Compose a plan")
        print("  devnet-chaos run experiment.yaml                       # Run it")
        print("  devnet-chaos validate <planner.yaml>                   # Validate config")
        return 1

    cancellation = CancellationToken()
    chaos = None
    if args.command == 'run':
        chaos = DevnetChaos(
            cancellation=cancellation,
            settle_delay=args.settle_delay,
            poll_interval=args.poll_interval,
            artifact_dir=args.artifact_dir,
        )
        signal.signal(signal.SIGTERM, lambda signum, frame: cancellation.cancel("terminated"))

    cli = ChaosCLI(chaos, cancellation)

    try:
        if args.command == 'plan':
            return cli.plan(args)
        elif args.command == 'run':
            return cli.run(args)
        elif args.command == 'validate':
            return cli.validate(args)
    except KeyboardInterrupt:
        cancellation.cancel("interrupted")
        print("\n\ndevnet-chaos was interrupted by user")
        return 130
    except Exception as e:
        print(f"\nUnexpected error: {e}")
        if getattr(args, 'verbose', False):
            traceback.print_exc()
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
