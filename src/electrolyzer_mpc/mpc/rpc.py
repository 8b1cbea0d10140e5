"""This module handles the Remote Procedure Call (RPC) communication of the control engine.

It sets up a Redis router using FastStream with two subscribers: `control`, which
computes the control of a sampling tick, and `observation`, which records the
process state observed after a decision was applied. The payload handling lives in
plain functions taking the engine, the subscribers fetch the application engine
and delegate to them.
"""

from datetime import datetime
from typing import Any, Dict

from faststream.redis import RedisRouter

from electrolyzer_mpc.models.decisions import ControlDecision
from electrolyzer_mpc.models.process import ProcessState
from electrolyzer_mpc.mpc.executor import ControlEngine
from electrolyzer_mpc.strategies.helper import StrategyHelper
from electrolyzer_mpc.util.errors import ConfigurationError, InvalidStateError
from electrolyzer_mpc.util.logging import LoggingUtil

logger = LoggingUtil.get_logger(__name__)
logger.info("The control subscriber is starting at %s:", str(datetime.now().astimezone()))


topic_prefix = "electrolyzer/"
control_function_name = "control"
observation_function_name = "observation"


control_router = RedisRouter(prefix=topic_prefix)


def process_control_request(engine: ControlEngine, control_request: Dict[str, Any]) -> Dict[str, Any]:
    """Computes the control requested by a transport message.

    Args:
        engine: The engine computing the control.
        control_request: A dictionary with the 'strategy', the 'state', the
                         'reference', the 'previous_control' and optional 'parameters'.

    Returns:
        The decision dictionary, or a dictionary with an 'error' key if the
        request is invalid.
    """
    logger.info("Received control request: %s", control_request)
    try:
        decision = engine.compute_control(
            control_request.get("strategy", StrategyHelper.HEMPC.name),
            control_request.get("state"),
            control_request.get("reference"),
            control_request.get("previous_control"),
            control_request.get("parameters"),
        )
    except (ConfigurationError, InvalidStateError) as e:
        logger.warning("Rejected control request: %s", e)
        return {"error": str(e)}

    return decision.to_dict()


def process_observation(engine: ControlEngine, observation: Dict[str, Any]) -> Dict[str, Any]:
    """Records the outcome of a decision described by a transport message.

    Args:
        engine: The engine recording the outcome.
        observation: A dictionary with the applied 'decision' (as returned by the
                     control subscriber) and the 'observed_state'.

    Returns:
        The performance record dictionary, or a dictionary with an 'error' key if
        the observation is invalid.
    """
    try:
        decision_payload = observation["decision"]
        decision = ControlDecision(
            control_value=float(decision_payload["control"]),
            strategy=StrategyHelper[decision_payload["algorithm"]],
            reference=float(decision_payload["reference"]),
            state=ProcessState.from_dict(decision_payload["state"]),
            cost=decision_payload.get("cost"),
            confidence=decision_payload.get("confidence"),
            computation_time_ms=float(decision_payload.get("computation_time_ms", 0.0)),
            horizon=decision_payload.get("horizon"),
            info=dict(decision_payload.get("info") or {}),
        )
        record = engine.record_outcome(decision, observation["observed_state"])
    except (KeyError, TypeError, ValueError) as e:
        # InvalidStateError and ConfigurationError are ValueErrors
        logger.warning("Rejected observation: %s", e)
        return {"error": str(e)}

    return record.to_dict()


@control_router.subscriber(control_function_name)
async def handle_control_request(control_request: Dict[str, Any]) -> Dict[str, Any]:
    """Handles incoming control requests via Redis RPC."""
    from electrolyzer_mpc.app import get_engine

    return process_control_request(get_engine(), control_request)


@control_router.subscriber(observation_function_name)
async def handle_observation(observation: Dict[str, Any]) -> Dict[str, Any]:
    """Handles incoming process observations via Redis RPC."""
    from electrolyzer_mpc.app import get_engine

    return process_observation(get_engine(), observation)
