#!/usr/bin/env python3
"""
Simple example of driving arbstylus from Python instead of the CLI.
"""
import sys

from arbstylus import ArbStylusError, CommandRouter, Settings


def main():
    """
    Demonstrate programmatic use of the CommandRouter.

    This example shows how to:
    1. Load settings from the environment / .env file
    2. Read balances on L2
    3. Read and increment the Stylus Counter contract
    """
    # Reads SOURCE_ADDRESS, SOURCE_PRIVATE_KEY, RPC_URL, COUNTER_CONTRACT_ADDRESS, ...
    settings = Settings.from_env()
    router = CommandRouter(settings)

    try:
        router.dispatch("l2balance")
        router.dispatch("callstylus", ["number()"])

        outcome = router.dispatch("callstylus", ["increment()"])
        print(f"\nIncrement mined in block {outcome.confirmed_block}: {outcome.tx_hash}")
    except ArbStylusError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
