import asyncio
import dataclasses
import functools
import logging
import re
from typing import Any, Callable, List, Optional

import click

from cmbump.engines import bumping, loggers, updating
from cmbump.errors import InitError
from cmbump.reactor import running
from cmbump.structs import configuration, references

logger = logging.getLogger(__name__)


@dataclasses.dataclass()
class CLIControls:
    """ Controls of an embedded watcher, which are impossible to pass via CLI. """
    stop_flag: Optional[asyncio.Event] = None
    settings: Optional[configuration.OperatorSettings] = None


class LogFormatParamType(click.Choice):

    def __init__(self) -> None:
        super().__init__(choices=[v.name.lower() for v in loggers.LogFormat])

    def convert(self, value: Any, param: Any, ctx: Any) -> loggers.LogFormat:
        if isinstance(value, loggers.LogFormat):
            return value
        name: str = super().convert(value, param, ctx)
        return loggers.LogFormat[name.upper()]


def logging_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to configure logging in all commands the same way."""
    @click.option('-v', '--verbose', is_flag=True)
    @click.option('--debug', is_flag=True)
    @click.option('-q', '--quiet', is_flag=True)
    @click.option('--log-format', type=LogFormatParamType(), default='full')
    @click.option('--log-refkey', type=str)
    @click.option('--log-prefix/--no-log-prefix', default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(verbose: bool, quiet: bool, debug: bool,
                log_format: loggers.LogFormat = loggers.LogFormat.FULL,
                log_prefix: Optional[bool] = False,
                log_refkey: Optional[str] = None,
                *args: Any, **kwargs: Any) -> Any:
        loggers.configure(debug=debug, verbose=verbose, quiet=quiet,
                          log_format=log_format, log_refkey=log_refkey, log_prefix=log_prefix)
        return fn(*args, debug=debug, **kwargs)

    return wrapper


@click.version_option(prog_name='cmbump')
@click.group(name='cmbump', context_settings=dict(
    auto_envvar_prefix='CM',
))
def main() -> None:
    pass


@main.command()
@logging_options
@click.option('-d', '--dir', 'base_dir', type=str, required=True, envvar='CM_DIR',
              help="The directory to which the files of the ConfigMaps are written.")
@click.option('-n', '--namespace', type=str, required=True, envvar='CM_NAMESPACE',
              help="The namespace in which to look for the ConfigMaps.")
@click.option('-l', '--labels', type=str, required=True, envvar='CM_LABELS',
              help="The label selector of the ConfigMaps, e.g. 'app=nginx'.")
@click.option('--tls-verify/--no-tls-verify', default=None, envvar='CM_TLS_VERIFY',
              help="Whether to verify the API server's certificate. Verified by default.")
@click.option('-c', '--process-command', type=str, envvar='CM_PROC_CMD',
              help="A regular expression for the command line of the process to signal.")
@click.option('-p', '--process-pid', type=int, envvar='CM_PROC_PID',
              help="The PID of the process to signal; overrides the command.")
@click.option('-a', '--process-parent-command', type=str,
              envvar=['CM_PROC_PARENT_CMD', 'CMD_PROC_PARENT_CMD'],
              help="A regular expression for the command line of the required parent process.")
@click.option('-i', '--process-parent-pid', type=int,
              envvar=['CM_PROC_PARENT_PID', 'CMD_PROC_PARENT_PID'],
              help="The PID of the required parent process; overrides the parent command.")
@click.option('-s', '--signal', 'signal_name', type=str, envvar='CM_PROC_SIGNAL',
              help="The signal to send on changes, e.g. SIGHUP. No signalling if not set.")
@click.option('--bump-on-delete', is_flag=True, default=False, envvar='CM_BUMP_ON_DELETE',
              help="Also signal the process when a whole ConfigMap is deleted.")
@click.make_pass_decorator(CLIControls, ensure=True)
def run(
        __controls: CLIControls,
        base_dir: str,
        namespace: str,
        labels: str,
        tls_verify: Optional[bool],
        process_command: Optional[str],
        process_pid: Optional[int],
        process_parent_command: Optional[str],
        process_parent_pid: Optional[int],
        signal_name: Optional[str],
        bump_on_delete: bool,
        debug: bool,
) -> None:
    """ Mirror the labelled ConfigMaps to a directory and signal a process on changes. """
    settings = __controls.settings if __controls.settings is not None else configuration.OperatorSettings()
    settings.bumping.on_deletion = bump_on_delete

    try:
        bumper: Optional[bumping.Bumper] = None
        if signal_name is not None:
            detections = build_detections(
                process_command=process_command,
                process_pid=process_pid,
                process_parent_command=process_parent_command,
                process_parent_pid=process_parent_pid,
            )
            bumper = bumping.Bumper(detections, signal_name)
            logger.info(f"Bumper will send {bumper.signal.name} to the process matching "
                        f"{' > '.join(str(detection) for detection in detections)}.")
        else:
            logger.info("Bumper is not configured.")
        updater = updating.ConfigUpdater(base_dir, bumper, settings=settings)
    except InitError as e:
        raise click.ClickException(str(e))

    selector = references.Selector(
        resource=references.CONFIGMAPS,
        namespace=references.NamespaceName(namespace),
        labels=labels,
    )
    logger.info(f"Watcher is starting for {selector}; the files go to {base_dir!r}.")
    return running.run(
        selector=selector,
        reconciler=updater,
        settings=settings,
        insecure=None if tls_verify is None else not tls_verify,
        stop_flag=__controls.stop_flag,
        debug=debug,
    )


def build_detections(
        *,
        process_command: Optional[str] = None,
        process_pid: Optional[int] = None,
        process_parent_command: Optional[str] = None,
        process_parent_pid: Optional[int] = None,
) -> List[bumping.ProcessDetection]:
    """
    Convert the CLI options to a chain of process detections, outermost first.

    The PIDs take precedence over the command lines if both are specified.
    """
    detections: List[bumping.ProcessDetection] = []
    parent = _build_detection(process_parent_command, process_parent_pid, adjective="parent ")
    target = _build_detection(process_command, process_pid, adjective="")
    if parent is not None:
        detections.append(parent)
    if target is not None:
        detections.append(target)
    return detections


def _build_detection(
        command: Optional[str],
        pid: Optional[int],
        *,
        adjective: str,
) -> Optional[bumping.ProcessDetection]:
    if pid is not None:
        if command is not None:
            logger.warning(f"Ignoring the {adjective}process command {command!r} "
                           f"because the {adjective}process PID {pid} is specified.")
        return bumping.PidDetection(pid)
    elif command is not None:
        try:
            return bumping.CmdlineDetection(re.compile(command))
        except re.error as e:
            raise InitError(f"Invalid {adjective}process command pattern {command!r}: {e}") from e
    else:
        return None
