import asyncio
import logging
import signal
import threading
from typing import Any, Collection, MutableSequence, Optional

from cmbump.clients import auth, piggybacking
from cmbump.reactor import processing, queueing
from cmbump.structs import configuration, references
from cmbump.utilities import aiotasks

logger = logging.getLogger(__name__)


def run(
        *,
        selector: references.Selector,
        reconciler: "processing.Reconciler[Any]",
        settings: Optional[configuration.OperatorSettings] = None,
        insecure: Optional[bool] = None,
        stop_flag: Optional[asyncio.Event] = None,
        debug: bool = False,
) -> None:
    """
    Run the whole watcher synchronously.

    This function should be used to run the watcher in normal sync mode.
    """
    try:
        asyncio.run(operator(
            selector=selector,
            reconciler=reconciler,
            settings=settings,
            insecure=insecure,
            stop_flag=stop_flag,
        ), debug=debug)
    except asyncio.CancelledError:
        pass


async def operator(
        *,
        selector: references.Selector,
        reconciler: "processing.Reconciler[Any]",
        settings: Optional[configuration.OperatorSettings] = None,
        insecure: Optional[bool] = None,
        stop_flag: Optional[asyncio.Event] = None,
) -> None:
    """
    Run the whole watcher asynchronously.

    This function should be used to run the watcher in an asyncio event-loop
    if the watcher is orchestrated explicitly and manually.

    It is efficiently `spawn_tasks` + `run_tasks` with the login and cleanup.
    """
    info = piggybacking.login(logger=logger, insecure=insecure)
    context = auth.APIContext(info)
    try:
        operator_tasks = await spawn_tasks(
            selector=selector,
            reconciler=reconciler,
            settings=settings,
            context=context,
            stop_flag=stop_flag,
        )
        await run_tasks(operator_tasks)
    finally:
        await context.close()


async def spawn_tasks(
        *,
        selector: references.Selector,
        reconciler: "processing.Reconciler[Any]",
        context: auth.APIContext,
        settings: Optional[configuration.OperatorSettings] = None,
        stop_flag: Optional[asyncio.Event] = None,
) -> Collection[aiotasks.Task]:
    """
    Spawn all the tasks needed to run the watcher.

    The tasks are properly inter-connected with the synchronisation primitives.
    """
    loop = asyncio.get_running_loop()

    # All tasks of the watcher are synced via these primitives and structures:
    settings = settings if settings is not None else configuration.OperatorSettings()
    engine = processing.ReconciliationEngine(reconciler)
    signal_flag: aiotasks.Future = asyncio.Future()
    tasks: MutableSequence[aiotasks.Task] = []

    # The API context is inherited by all the tasks created after this point.
    auth.context_var.set(context)

    # Few common background forever-running infrastructural tasks (irregular root tasks).
    tasks.append(asyncio.create_task(
        name="stop-flag checker",
        coro=_stop_flag_checker(
            signal_flag=signal_flag,
            stop_flag=stop_flag)))
    tasks.append(asyncio.create_task(
        name="ultimate termination",
        coro=_ultimate_termination(
            settings=settings,
            stop_flag=stop_flag)))

    # The actual work: the watch-stream of the ConfigMaps fed into the engine one by one.
    tasks.append(aiotasks.create_guarded_task(
        name="watcher of configmaps", logger=logger,
        coro=queueing.watcher(
            settings=settings,
            selector=selector,
            engine=engine)))

    # Ensure that all guarded tasks got control for a moment to enter the guard.
    await asyncio.sleep(0)

    # On Ctrl+C or pod termination, cancel all tasks gracefully.
    if threading.current_thread() is threading.main_thread():
        # Handle NotImplementedError when ran on Windows since asyncio only supports Unix signals
        try:
            loop.add_signal_handler(signal.SIGINT, signal_flag.set_result, signal.SIGINT)
            loop.add_signal_handler(signal.SIGTERM, signal_flag.set_result, signal.SIGTERM)
        except NotImplementedError:
            logger.warning("OS signals are ignored: can't add signal handler in Windows.")

    else:
        logger.warning("OS signals are ignored: running not in the main thread.")

    return tasks


async def run_tasks(
        root_tasks: Collection[aiotasks.Task],
) -> None:
    """
    Orchestrate the tasks and terminate them gracefully when needed.

    The root tasks are expected to run forever. Their number is limited. Once
    any of them exits, the whole watcher and all other root tasks should exit.
    """

    # Run the infinite tasks until one of them fails/exits (they never exit normally).
    # If the watcher is cancelled, propagate the cancellation to all the root tasks.
    try:
        root_done, root_pending = await aiotasks.wait(root_tasks, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        await aiotasks.stop(root_tasks, title="Root", logger=logger)
        raise

    # If the watcher is intact, but one of the root tasks has exited (successfully or not),
    # cancel all the remaining root tasks.
    root_cancelled = await aiotasks.stop(root_pending, title="Root", logger=logger)

    # If succeeded or if cancellation is silenced, re-raise from failed tasks (if any).
    aiotasks.reraise(root_done | root_cancelled)


async def _stop_flag_checker(
        signal_flag: aiotasks.Future,
        stop_flag: Optional[asyncio.Event],
) -> None:
    """
    A top-level task for external stopping by setting a stop-flag. Once set,
    this task will exit, and thus all other top-level tasks will be cancelled.
    """

    # Selects the flags to be awaited (if set).
    flags = []
    if signal_flag is not None:
        flags.append(signal_flag)
    if stop_flag is not None:
        flags.append(asyncio.create_task(stop_flag.wait(), name="stop-flag waiter"))

    # Wait until one of the stoppers is set/raised.
    try:
        done, pending = await asyncio.wait(flags, return_when=asyncio.FIRST_COMPLETED)
        future = done.pop()
        result = await future
    except asyncio.CancelledError:
        pass  # the watcher is stopping for any other reason
    else:
        if isinstance(result, signal.Signals):
            logger.info("Signal %s is received. Watcher is stopping.", result.name)
        else:
            logger.info("Stop-flag is raised. Watcher is stopping.")
    finally:
        for flag in flags:
            if flag is not signal_flag:
                flag.cancel()


async def _ultimate_termination(
        *,
        settings: configuration.OperatorSettings,
        stop_flag: Optional[asyncio.Event],
) -> None:
    """
    Ensure that SIGKILL is sent regardless of the watcher's stopping routines.

    Try to be gentle and kill only the thread with the watcher, not the whole
    process or a process group. If this is the main thread (as in most cases),
    this would imply the process termination too.

    Intentional stopping via a stop-flag is ignored.
    """
    # Sleep forever, or until cancelled, which happens when the watcher begins its shutdown.
    try:
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        if stop_flag is None or not stop_flag.is_set():
            if settings.process.ultimate_exiting_timeout is not None:
                loop = asyncio.get_running_loop()
                loop.call_later(settings.process.ultimate_exiting_timeout,
                                signal.pthread_kill, threading.get_ident(), signal.SIGKILL)
