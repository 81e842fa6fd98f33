"""Config commands for the scraps CLI - show and check."""

import sys

from scraps.cli.commands.helpers import print_json
from scraps.config import ScrapsConfig, validate_config


def cmd_config(args, config: ScrapsConfig):
    """Runs without building Scraps, so it works even when config is broken."""
    if args.config_action == "show":
        print_json(config.to_dict(redact=True))
        return

    validation = validate_config(config)
    if validation.valid:
        print("✓ Configuration is valid")
        return
    print(f"✗ {validation.message}")
    sys.exit(1)
