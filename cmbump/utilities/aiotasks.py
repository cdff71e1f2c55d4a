"""
Helpers for orchestrating the operator's root asyncio tasks.

Only tasks are supported, not generic futures or coroutines: we not only wait
for them, but also cancel them when the operator is stopping.
"""
import asyncio
from typing import TYPE_CHECKING, Any, Collection, Coroutine, Optional, Set, Tuple, cast

from cmbump.utilities import typedefs

# At runtime, the asyncio classes are not subscriptable in older Pythons.
if TYPE_CHECKING:
    Future = asyncio.Future[Any]
    Task = asyncio.Task[Any]
else:
    Future = asyncio.Future
    Task = asyncio.Task


async def guard(
        coro: Coroutine[Any, Any, Any],
        name: str,
        *,
        finishable: bool = False,
        logger: Optional[typedefs.Logger] = None,
) -> None:
    """
    A guard for a presumably eternal (never-finishing) task.

    If the task exits on its own, it is a misbehaviour, which is logged.
    Errors are always logged as soon as they happen, not when (and if)
    the task is awaited by the orchestrating routine.
    """
    capname = name.capitalize()
    try:
        await coro
    except asyncio.CancelledError:
        if logger is not None:
            logger.debug(f"{capname} is cancelled.")
        raise
    except Exception as e:
        if logger is not None:
            logger.exception(f"{capname} has failed: %s", e)
        raise
    else:
        if logger is not None and not finishable:
            logger.warning(f"{capname} has finished unexpectedly.")


def create_guarded_task(
        coro: Coroutine[Any, Any, Any],
        name: str,
        *,
        finishable: bool = False,
        logger: Optional[typedefs.Logger] = None,
) -> Task:
    """ A shortcut for a named guarded task (the name is used in 2 places). """
    return asyncio.create_task(
        guard(coro=coro, name=name, finishable=finishable, logger=logger),
        name=name,
    )


async def wait(
        tasks: Collection[Task],
        *,
        timeout: Optional[float] = None,
        return_when: Any = asyncio.ALL_COMPLETED,
) -> Tuple[Set[Task], Set[Task]]:
    """
    A safer version of :func:`asyncio.wait` -- does not fail on an empty list.
    """
    if not tasks:
        return set(), set()
    done, pending = await asyncio.wait(tasks, timeout=timeout, return_when=return_when)
    return cast(Set[Task], done), cast(Set[Task], pending)


async def stop(
        tasks: Collection[Task],
        *,
        title: str,
        logger: Optional[typedefs.Logger] = None,
) -> Set[Task]:
    """
    Cancel the tasks and wait for them to finish, however long it takes.

    The stopping has no timeouts: it ends either with all tasks exited,
    or with the stopping routine itself being cancelled.
    """
    captitle = title.capitalize()
    if not tasks:
        return set()

    for task in tasks:
        task.cancel()

    done, pending = await wait(tasks)
    if logger is not None:
        logger.debug(f"{captitle} tasks are stopped; tasks left: {pending!r}")
    return done


def reraise(tasks: Collection[Task]) -> None:
    """
    Re-raise the errors of the tasks, if any. Cancellations are not errors.
    """
    for task in tasks:
        try:
            task.result()
        except asyncio.CancelledError:
            pass
