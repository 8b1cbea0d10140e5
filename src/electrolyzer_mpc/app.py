"""Main application module of the electrolyzer Model Predictive Control (MPC) system.

This module sets up the core components of the application, including:
- The control engine, with its learned predictor, model store and context provider,
  built from the configuration.
- A background scheduler running the periodic monitoring jobs: the performance
  evaluation (which may retrain the learned predictor) and the comparison of the
  classical strategies.
- A Redis-based message broker handling the control requests and the process
  observations via RPC.
"""

import asyncio
import os
from typing import Any, Dict

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from faststream import FastStream
from faststream.redis import RedisBroker

from electrolyzer_mpc.models.parameters import MPCParameters
from electrolyzer_mpc.mpc.comparator import StrategyComparator
from electrolyzer_mpc.mpc.executor import ControlEngine
from electrolyzer_mpc.mpc.performance import PerformanceTracker
from electrolyzer_mpc.mpc.rpc import control_router
from electrolyzer_mpc.neural.learned_predictor import LearnedPredictor
from electrolyzer_mpc.neural.model_store import ModelStore
from electrolyzer_mpc.neural.network import NetworkConfig
from electrolyzer_mpc.retrievers.api_calls import CoreApiContextProvider
from electrolyzer_mpc.retrievers.context_provider import ContextProvider
from electrolyzer_mpc.retrievers.tariff_schedule import TariffScheduleContextProvider
from electrolyzer_mpc.util.config import load_config
from electrolyzer_mpc.util.logging import LoggingUtil

logger = LoggingUtil.get_logger(__name__)
scheduler = BackgroundScheduler()
_engine: ControlEngine | None = None


def job_finished_listener(event: JobExecutionEvent) -> None:
    """Listener that will be called when a monitoring job is completed or has failed.

    Args:
        event: The `JobExecutionEvent` object containing information about the job.
    """
    if event.exception is not None:
        logger.error("Monitoring job %s failed: %s", event.job_id, event.exception)
    else:
        logger.debug("Monitoring job %s completed", event.job_id)


# Add the listener for job completion events
scheduler.add_listener(job_finished_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)


def build_context_provider() -> ContextProvider:
    """Uses the Core API when `CORE_API_URL` is set, the local tariff schedule otherwise."""
    if os.getenv("CORE_API_URL"):
        logger.info("Using the Core API context provider")
        return CoreApiContextProvider()
    logger.info("Using the tariff schedule context provider")
    return TariffScheduleContextProvider()


def build_engine(config: Dict[str, Any]) -> ControlEngine:
    """Creates the control engine described by a configuration.

    Args:
        config: The configuration dictionary returned by `load_config`.

    Returns:
        The engine, with its predictor loaded from the model store.
    """
    training = config["training"]
    performance = config["performance"]
    model_store = ModelStore(config["model_store"]["directory"], config["model_store"]["key"])

    predictor = LearnedPredictor(
        config=NetworkConfig.from_dict(config["neural_network"]),
        model_store=model_store,
        buffer_capacity=training["buffer_capacity"],
        auto_train_every=training["auto_train_every"],
        auto_train_window=training["auto_train_window"],
    )

    return ControlEngine(
        predictor=predictor,
        context_provider=build_context_provider(),
        default_parameters=MPCParameters.from_dict(config["mpc_parameters"]),
        tracker=PerformanceTracker(performance["record_capacity"], performance["degradation_threshold"]),
        comparator=StrategyComparator(performance["comparison_capacity"]),
        retrain_window=training["retrain_window"],
        collect_samples=training["collect_samples"],
    )


def get_engine() -> ControlEngine:
    """Returns the application engine, building it from the configuration on first use."""
    global _engine
    if _engine is None:
        _engine = build_engine(load_config())
    return _engine


def _evaluation_job(engine: ControlEngine) -> None:
    if engine.evaluate_performance():
        logger.info("Neural MPC retrained after performance degradation")


def _comparison_job(engine: ControlEngine) -> None:
    snapshot = engine.compare_strategies()
    engine.analyze_trends()
    logger.info("Strategy scores: %s", snapshot.scores)


def schedule_monitoring_jobs(engine: ControlEngine, config: Dict[str, Any] | None = None) -> None:
    """Schedules the periodic performance evaluation and strategy comparison.

    The intervals (seconds) come from the `MONITOR_INTERVAL` and `TREND_INTERVAL`
    environment variables, or else from the monitoring section of the configuration.

    Args:
        engine: The engine to monitor.
        config: The configuration dictionary; loaded when omitted.
    """
    monitoring = (config or load_config())["monitoring"]
    evaluation_interval = int(os.getenv("MONITOR_INTERVAL", monitoring["evaluation_interval"]))
    trend_interval = int(os.getenv("TREND_INTERVAL", monitoring["trend_interval"]))

    logger.info("Adding performance evaluation job to scheduler, every %s s", evaluation_interval)
    scheduler.add_job(
        _evaluation_job,
        trigger=IntervalTrigger(seconds=evaluation_interval),
        args=[engine],
        id="evaluate_performance",
        replace_existing=True,
        max_instances=1,
    )

    logger.info("Adding strategy comparison job to scheduler, every %s s", trend_interval)
    scheduler.add_job(
        _comparison_job,
        trigger=IntervalTrigger(seconds=trend_interval),
        args=[engine],
        id="compare_strategies",
        replace_existing=True,
        max_instances=1,
    )

    if not scheduler.running:
        scheduler.start()


def stop_monitoring_jobs() -> None:
    """Stops the scheduler; no further monitoring tick is run."""
    if scheduler.running:
        logger.info("Stopping monitoring jobs")
        scheduler.shutdown(wait=False)


def main() -> None:
    """Main entry point of the electrolyzer MPC application.

    This function builds the engine, starts the monitoring jobs, sets up the
    Redis event broker, includes the control router for handling incoming
    requests, and starts the FastStream application to listen for messages.
    """
    global _engine
    config = load_config()
    _engine = build_engine(config)
    schedule_monitoring_jobs(_engine, config)

    # Redis event broker setup
    redis_password = os.getenv("REDIS_PASSWORD")
    redis_host = os.getenv("REDIS_HOST")
    redis_port = os.getenv("REDIS_PORT")
    redis_url = f"redis://:{redis_password}@{redis_host}:{redis_port}"
    broker = RedisBroker(redis_url)

    # Include routers on the broker
    broker.include_router(control_router)

    # Create the app
    broker_events_app = FastStream(broker)

    try:
        asyncio.run(broker_events_app.run())
    finally:
        stop_monitoring_jobs()


if __name__ == "__main__":
    main()
