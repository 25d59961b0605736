"""
agile-planner serve - Run the JSON-RPC server on stdin/stdout.
"""

import logging
import signal
import sys
import threading
from pathlib import Path
from typing import BinaryIO, Optional

from agile_planner.lib.agents_config import check_stage_binary, load_agents_config
from agile_planner.lib.config import PlannerConfig
from agile_planner.server.dispatcher import RequestDispatcher
from agile_planner.server.tools import ToolContext
from agile_planner.server.transport import ServerShutdown, StdioTransport

logger = logging.getLogger(__name__)


def build_server(
    config: PlannerConfig,
    input_stream: BinaryIO,
    output_stream: BinaryIO,
    context: Optional[ToolContext] = None,
) -> tuple[StdioTransport, RequestDispatcher]:
    """Wire a transport to a dispatcher. Responses go back on output_stream."""
    if context is None:
        agents_path = Path(config.agents_file) if config.agents_file else Path.cwd()
        context = ToolContext(config=config, agents=load_agents_config(agents_path))

    transport = StdioTransport(input_stream, output_stream)
    dispatcher = RequestDispatcher(context)

    def on_message(text: str) -> None:
        response = dispatcher.handle_line(text)
        if response is not None:
            transport.send(response)

    transport.on_message(on_message)
    return transport, dispatcher


def cmd_serve(args, config: PlannerConfig) -> int:
    """Serve requests until SIGINT/SIGTERM (or end of input with --exit-on-eof)."""
    shutdown = threading.Event()

    def request_shutdown(signum, frame):
        shutdown.set()
        raise ServerShutdown(signal.Signals(signum).name)

    transport, dispatcher = build_server(config, sys.stdin.buffer, sys.stdout.buffer)
    for stage in ("generate_backlog", "generate_feature"):
        try:
            problem = check_stage_binary(dispatcher.context.agents, stage)
        except ValueError as e:
            problem = str(e)
        if problem:
            logger.warning(problem)

    original_sigterm = signal.signal(signal.SIGTERM, request_shutdown)
    original_sigint = signal.signal(signal.SIGINT, request_shutdown)
    logger.info(f"Server listening on stdio (output root: {config.output_root or 'cwd'})")
    try:
        transport.serve(shutdown, exit_on_eof=args.exit_on_eof or config.exit_on_eof)
    finally:
        signal.signal(signal.SIGTERM, original_sigterm)
        signal.signal(signal.SIGINT, original_sigint)

    logger.info("Server stopped")
    return 0
