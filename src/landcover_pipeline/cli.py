"""Click CLI: ``lc-pipeline`` command group."""

from __future__ import annotations

import json

import click
from loguru import logger

from landcover_pipeline.config import load_config
from landcover_pipeline.errors import (
    BackendQueryError,
    ConfigError,
    GeometryError,
    MissingYearError,
    SubmissionError,
)
from landcover_pipeline.exit_codes import ExitCode, exit_code_from_outcomes
from landcover_pipeline.logging import bind_run_context, new_run_id, setup_logging


def _build_context(ctx: click.Context):
    """Build the pipeline context, mapping setup failures onto exit codes."""
    from landcover_pipeline.steps.context import build_context

    try:
        return build_context(ctx.obj["cfg"])
    except (GeometryError, ConfigError) as e:
        logger.error(f"Invalid input: {e}")
        ctx.exit(ExitCode.BAD_INPUT)
    except ImportError as e:
        logger.error(f"Missing dependency: {e}. Install the 'earthengine' extra for Earth Engine backends.")
        ctx.exit(ExitCode.MISSING_DEPENDENCY)
    except BackendQueryError as e:
        logger.error(f"Backend unavailable: {e}")
        ctx.exit(ExitCode.TOTAL_FAILURE)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------

@click.group(invoke_without_command=True)
@click.version_option(package_name="landcover-pipeline", prog_name="lc-pipeline")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True),
              help="Path to pipeline YAML config.")
@click.option("--log-level", default="INFO",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.option("--log-format", default="text",
              type=click.Choice(["text", "json"]),
              help="Log output format.")
@click.option("--log-file", default=None, type=click.Path(dir_okay=False),
              help="Also write JSON-lines logs (DEBUG and up) to this file.")
@click.option("--run-id", default=None, help="Override auto-generated run ID.")
@click.option("--show-config", is_flag=True, help="Print resolved config as YAML and exit.")
@click.pass_context
def lc_pipeline(ctx: click.Context, config_path, log_level, log_format, log_file, run_id,
                show_config):
    """Annual land cover statistics and exports over a region of interest."""
    ctx.ensure_object(dict)

    # Logging with run context
    run_id = run_id or new_run_id()
    ctx.obj["run_id"] = run_id
    bind_run_context(run_id)
    setup_logging(level=log_level, fmt=log_format, log_file=log_file)

    try:
        ctx.obj["cfg"] = load_config(config_path)
    except ConfigError as e:
        logger.error(f"Invalid config: {e}")
        ctx.exit(ExitCode.BAD_INPUT)
        return

    if show_config:
        import dataclasses
        import yaml as _yaml
        click.echo(_yaml.dump(dataclasses.asdict(ctx.obj["cfg"]), default_flow_style=False))
        ctx.exit(ExitCode.SUCCESS)
        return

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------

@lc_pipeline.command()
@click.option("--mode", default="analyze",
              type=click.Choice(["analyze", "export", "both"]),
              help="Compute statistics, submit exports, or both.")
@click.option("--start-year", type=int, default=None, help="Override config start_year.")
@click.option("--end-year", type=int, default=None, help="Override config end_year.")
@click.option("--max-workers", type=int, default=None, help="Years processed concurrently.")
@click.option("--report-dir", default="reports")
@click.option("--run-dir", default=".lc_runs", help="Where run metadata is saved.")
@click.option("--dry-run", is_flag=True, help="Preview the run without querying or submitting.")
@click.option("--yes", is_flag=True, help="Skip interactive approval prompt for exports.")
@click.pass_context
def run(ctx, mode, start_year, end_year, max_workers, report_dir, run_dir, dry_run, yes):
    """Process every year in the configured range."""
    from landcover_pipeline.steps.batch import run_batch
    from landcover_pipeline.tracking import RunStore

    cfg = ctx.obj["cfg"]
    if start_year is not None:
        cfg.start_year = start_year
    if end_year is not None:
        cfg.end_year = end_year
    if max_workers is not None:
        cfg.concurrency = max_workers
    try:
        cfg.validate()
    except ConfigError as e:
        logger.error(f"Invalid options: {e}")
        ctx.exit(ExitCode.BAD_INPUT)
        return

    years = cfg.years
    if dry_run:
        click.echo(f"Years: {years[0]}-{years[-1]} ({len(years)}), Mode: {mode}, "
                   f"Concurrency: {cfg.concurrency}")
        click.echo(f"Catalog: {cfg.catalog.type} ({cfg.catalog.path if cfg.catalog.type == 'directory' else cfg.catalog.collection})")
        if mode in ("export", "both"):
            click.echo(f"Exports: {cfg.export.backend} -> {cfg.export.folder}/"
                       f"{cfg.export.naming_template} ({cfg.export.format}, {cfg.export.crs})")
        ctx.exit(ExitCode.SUCCESS)
        return

    if mode in ("export", "both") and not yes:
        click.confirm(f"Submit up to {len(years)} export jobs?", abort=True)

    pctx = _build_context(ctx)
    try:
        outcomes, _ = run_batch(
            pctx, mode, ctx.obj["run_id"],
            report_dir=report_dir, store=RunStore(run_dir),
        )
    except KeyboardInterrupt:
        logger.warning("Interrupted; remaining years were not started")
        ctx.exit(ExitCode.USER_ABORT)
        return
    except (GeometryError, ConfigError) as e:
        logger.error(f"Invalid input: {e}")
        ctx.exit(ExitCode.BAD_INPUT)
        return
    finally:
        pctx.close()

    logger.info(f"Run metadata saved: {run_dir}/{ctx.obj['run_id']}.json")
    ctx.exit(exit_code_from_outcomes(outcomes.values()))


# ---------------------------------------------------------------------------
# stats
# ---------------------------------------------------------------------------

@lc_pipeline.command()
@click.option("--year", type=int, required=True)
@click.option("-o", "--output", default=None, help="Write the result as JSON to this path.")
@click.pass_context
def stats(ctx, year, output):
    """Class histogram and grouped areas for a single year."""
    from landcover_pipeline.steps.single_year import run_year_stats

    pctx = _build_context(ctx)
    try:
        analysis = run_year_stats(pctx, year)
    except MissingYearError as e:
        logger.warning(str(e))
        ctx.exit(ExitCode.NO_WORK)
        return
    finally:
        pctx.close()

    payload = {"year": year, **analysis.to_dict(ndigits=4)}
    text = json.dumps(payload, indent=2)
    if output:
        with open(output, "w") as f:
            f.write(text + "\n")
        logger.info(f"Stats written to {output}")
    else:
        click.echo(text)
    ctx.exit(ExitCode.SUCCESS)


# ---------------------------------------------------------------------------
# export
# ---------------------------------------------------------------------------

@lc_pipeline.command()
@click.option("--year", type=int, required=True)
@click.option("--wait", is_flag=True, help="Poll until the job finishes.")
@click.option("--poll-interval", type=float, default=10.0)
@click.option("--timeout", type=float, default=None, help="Give up waiting after this many seconds.")
@click.pass_context
def export(ctx, year, wait, poll_interval, timeout):
    """Submit the export job for a single year."""
    from landcover_pipeline.export.job import JobState
    from landcover_pipeline.steps.single_year import run_year_export, wait_for_export

    pctx = _build_context(ctx)
    try:
        job = run_year_export(pctx, year)
        if wait:
            job = wait_for_export(pctx, job, interval=poll_interval, timeout=timeout)
    except MissingYearError as e:
        logger.warning(str(e))
        ctx.exit(ExitCode.NO_WORK)
        return
    except SubmissionError as e:
        logger.error(f"Export rejected: {e}")
        ctx.exit(ExitCode.TOTAL_FAILURE)
        return
    finally:
        pctx.close()

    click.echo(json.dumps(job.to_dict(), indent=2, default=str))
    ctx.exit(ExitCode.TOTAL_FAILURE if job.state is JobState.FAILED else ExitCode.SUCCESS)


# ---------------------------------------------------------------------------
# resolve
# ---------------------------------------------------------------------------

@lc_pipeline.command()
@click.option("--start-year", type=int, default=None)
@click.option("--end-year", type=int, default=None)
@click.pass_context
def resolve(ctx, start_year, end_year):
    """List which years of the range have a frame in the catalog."""
    from landcover_pipeline.steps.single_year import year_availability

    cfg = ctx.obj["cfg"]
    if start_year is not None:
        cfg.start_year = start_year
    if end_year is not None:
        cfg.end_year = end_year
    years = cfg.years

    pctx = _build_context(ctx)
    try:
        table = year_availability(pctx, years)
    finally:
        pctx.close()

    found = 0
    for year, info in table.items():
        if info["available"]:
            found += 1
            flag = f" ({info['candidates']} candidates)" if info["candidates"] > 1 else ""
            click.echo(f"{year}  {info['acquired']}  {info['source']}{flag}")
        else:
            click.echo(f"{year}  missing")
    logger.info(f"{found}/{len(table)} years available")
    ctx.exit(ExitCode.SUCCESS if found else ExitCode.NO_WORK)


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------

@lc_pipeline.command()
@click.argument("run_id", required=False)
@click.option("--run-dir", default=".lc_runs")
@click.option("--latest", is_flag=True, help="Poll the most recently saved run.")
@click.pass_context
def status(ctx, run_id, run_dir, latest):
    """Poll the export jobs of a previous run (lists saved runs without RUN_ID)."""
    from landcover_pipeline.backends.factory import build_backends
    from landcover_pipeline.steps.status import poll_run_exports
    from landcover_pipeline.tracking import RunStore

    store = RunStore(run_dir)
    if latest and run_id is None:
        run_id = store.latest()
    if run_id is None:
        runs = store.list_runs()
        for rid in runs:
            click.echo(rid)
        ctx.exit(ExitCode.SUCCESS if runs else ExitCode.NO_WORK)
        return

    try:
        backends = build_backends(ctx.obj["cfg"])
    except ConfigError as e:
        logger.error(f"Invalid config: {e}")
        ctx.exit(ExitCode.BAD_INPUT)
        return
    except ImportError as e:
        logger.error(f"Missing dependency: {e}")
        ctx.exit(ExitCode.MISSING_DEPENDENCY)
        return
    except BackendQueryError as e:
        logger.error(f"Backend unavailable: {e}")
        ctx.exit(ExitCode.TOTAL_FAILURE)
        return

    try:
        rows = poll_run_exports(store, run_id, backends.export)
    except FileNotFoundError:
        logger.error(f"Run {run_id} not found in {store.base_dir}")
        ctx.exit(ExitCode.BAD_INPUT)
        return
    finally:
        backends.export.shutdown(wait=False)

    for row in rows:
        click.echo(f"{row['year']}  {row['name']}  {row['job_id']}  {row['state']}")
    if not rows:
        logger.info(f"Run {run_id} has no submitted exports")
        ctx.exit(ExitCode.NO_WORK)
        return
    failed = sum(1 for r in rows if r["state"] == "failed")
    if failed == len(rows):
        ctx.exit(ExitCode.TOTAL_FAILURE)
    elif failed:
        ctx.exit(ExitCode.PARTIAL_FAILURE)
    else:
        ctx.exit(ExitCode.SUCCESS)


if __name__ == "__main__":
    lc_pipeline()
