"""CLI entrypoint using Typer."""

import asyncio
import logging

import typer

from repair_agent.agent import Agent
from repair_agent.errors import PublishError, RepairAgentError

app = typer.Typer(help="Clone a repository, repair failing tests, publish the fix branch")


@app.callback()
def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@app.command()
def run(
    repo_url: str = typer.Argument(..., help="Repository URL (or local path) to repair"),
    team: str = typer.Option(..., "--team", help="Team name, used in the branch name"),
    leader: str = typer.Option(..., "--leader", help="Team leader name, used in the branch name"),
    as_json: bool = typer.Option(False, "--json", help="Print the full report as JSON"),
) -> None:
    # Demo: repair-agent run https://github.com/org/repo --team "Code Crew" --leader "Ada"
    try:
        report = asyncio.run(Agent().run_repair(repo_url, team, leader))
    except PublishError as e:
        typer.echo(f"Publish failed: {e}", err=True)
        typer.echo(f"Final status: {e.final_status}, fixes applied: {len(e.fixes)}", err=True)
        raise typer.Exit(code=1)
    except RepairAgentError as e:
        typer.echo(f"Run failed: {e}", err=True)
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(report.model_dump_json(indent=2))
        return

    typer.echo(f"Status:     {report.status.value}")
    typer.echo(f"Branch:     {report.branch_name}")
    typer.echo(f"Iterations: {report.iterations}")
    typer.echo(f"Fixes:      {report.total_fixes}")
    for fix in report.fixes:
        typer.echo(f"  - [{fix.bug_type.value}] {fix.file}:{fix.line} {fix.commit_message}")
    typer.echo(
        f"Score:      {report.score.final_score} "
        f"(base {report.score.base_score}, speed +{report.score.speed_bonus}, "
        f"efficiency -{report.score.efficiency_penalty})"
    )
    typer.echo(f"Time:       {report.time_taken}")


if __name__ == "__main__":
    app()
