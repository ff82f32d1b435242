"""Command-line interface for the gas predictor."""

import sys
import json
import time
import argparse
from .config import Config
from .rpc import RPCClient
from .node import RPCChainBackend, RPCTxPool
from .prediction import EngineState, Prediction
from .logging import setup_logging, get_logger
from .structured_output import StructuredOutputWriter

logger = get_logger(__name__)


def build_engine(
    config: Config,
    rpc_client: RPCClient,
    structured_writer: StructuredOutputWriter = None,
) -> Prediction:
    """Build a prediction engine wired to the node behind rpc_client."""
    backend = RPCChainBackend(
        rpc_client,
        head_poll_secs=config.head_poll_secs,
        max_poll_failures=config.max_poll_failures,
    )
    pool = RPCTxPool(rpc_client)
    return Prediction(config.prediction_config, backend, pool, structured_writer=structured_writer)


def _prices_payload(engine: Prediction) -> dict:
    prices = engine.current_prices()
    updated_at = engine.store.updated_at
    return {
        "fast": prices.fast,
        "median": prices.median,
        "low": prices.low,
        "unit": "gwei",
        "updated_at": updated_at.isoformat() + "Z" if updated_at else None,
    }


def main(argv=None):
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description="Predict fast/median/low gas prices from a node's pending pool "
                    "and recent block occupancy."
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config.yaml (default: search for config.yaml)"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one prediction then exit (cron-friendly)"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Pretty-print JSON output"
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=10.0,
        help="Seconds between printed predictions in continuous mode (default: 10)"
    )

    args = parser.parse_args(argv)

    try:
        config = Config(args.config)
    except FileNotFoundError as e:
        # Basic logging until setup_logging can run
        import logging
        logging.basicConfig(level=logging.ERROR, format='[%(levelname)s] %(message)s')
        logger.error(f"Config file not found: {e}")
        sys.exit(1)
    except (ValueError, OSError) as e:
        import logging
        logging.basicConfig(level=logging.ERROR, format='[%(levelname)s] %(message)s')
        logger.error(f"Error loading config: {e}")
        sys.exit(1)

    setup_logging(config)

    structured_writer = None
    structured_cfg = config.structured_output_config
    if structured_cfg.get("enabled"):
        structured_writer = StructuredOutputWriter(
            base_dir=structured_cfg["base_dir"],
            predictions_filename=structured_cfg["predictions_filename"],
            heads_filename=structured_cfg["heads_filename"],
        )

    rpc_client = RPCClient(config.rpc_url, timeout=config.rpc_timeout_secs)
    try:
        _run(args, build_engine(config, rpc_client, structured_writer))
    finally:
        rpc_client.close()


def _run(args, engine: Prediction):
    indent = 2 if args.verbose else None

    if args.once:
        try:
            engine.run_once()
        except Exception as e:
            logger.error(f"Error in one-shot run: {e}", exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        output = _prices_payload(engine)
        print(json.dumps(output, indent=indent))
        logger.debug(f"One-shot run completed: {json.dumps(output)}")
        return

    try:
        engine.start()
    except Exception as e:
        logger.error(f"Failed to start prediction engine: {e}", exc_info=True)
        sys.exit(1)

    try:
        while True:
            time.sleep(args.interval)
            print(json.dumps(_prices_payload(engine), indent=indent), flush=True)
            if engine.state is EngineState.STOPPED:
                logger.error("Prediction engine stopped; exiting")
                sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Exiting.")
    finally:
        engine.stop()


if __name__ == "__main__":
    main()
