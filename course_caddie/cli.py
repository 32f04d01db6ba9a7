"""
Command-line interface for Course Caddie.
Built with Click and Rich for terminal output.
"""

import json
import logging
import sys
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import get_config
from .database import Database, DatabaseError
from .distributions import build_bag_distributions
from .hazards import share_course_hazards
from .models import Club, Course, RiskTier, Shot, StrategyMode
from .regenerator import PlanCacheManager
from .simulator import get_simulator

console = Console()

MODE_CHOICE = click.Choice([m.value for m in StrategyMode])
TIER_STYLES = {RiskTier.GREEN: "green", RiskTier.YELLOW: "yellow", RiskTier.RED: "red"}


def simulation_options(func):
    """Options shared by every command that runs the simulator."""
    func = click.option("--seed", type=int, default=None, help="RNG seed for repeatable results")(func)
    func = click.option("--trials", "-n", type=int, default=None, help="Trials per strategy")(func)
    func = click.option("--mode", "-m", type=MODE_CHOICE, default=StrategyMode.SCORING.value,
                        help="Rank by expected strokes (scoring) or blow-up risk (safe)")(func)
    func = click.option("--tee", "-t", default=None, help="Tee box (default: first listed)")(func)
    return func


def _open_db() -> Database:
    try:
        return Database()
    except DatabaseError as e:
        console.print(f"[red]{e}[/]")
        sys.exit(1)


def _load_course(db: Database, course_id: str) -> Course:
    course = db.get_course(course_id)
    if not course:
        console.print(f"[red]Course '{course_id}' not found![/]")
        sys.exit(1)
    return course


def _default_tee(course: Course, tee: Optional[str]) -> str:
    if tee:
        return tee
    for hole in course.holes:
        if hole.yardages:
            return next(iter(hole.yardages))
    return ""


@click.group()
@click.version_option(version="1.0.0", prog_name="Course Caddie")
def cli():
    """Course Caddie - Monte Carlo course strategy for your bag."""
    config = get_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(message)s",
    )
    for error in config.validate_config():
        console.print(f"[yellow]Config: {error}[/]")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--share-hazards", is_flag=True,
              help="Borrow OB/trees/water from neighbouring holes and trim hazards to each corridor")
def seed(file: str, share_hazards: bool):
    """Load clubs, shots and courses from a JSON file."""
    with open(file, "r", encoding="utf-8") as f:
        data = json.load(f)

    db = _open_db()

    clubs = [Club.from_dict(c) for c in data.get("clubs", [])]
    for club in clubs:
        db.save_club(club)

    shots = [Shot.from_dict(s) for s in data.get("shots", [])]
    if shots:
        db.save_shots(shots)

    courses = [Course.from_dict(c) for c in data.get("courses", [])]
    for course in courses:
        if share_hazards:
            share_course_hazards(course)
        db.save_course(course)

    stale = 0
    if clubs or shots:
        stale += db.mark_stale("practice data updated")
    for course in courses:
        stale += db.mark_stale("course updated", course.id)

    console.print(Panel.fit(
        f"[green]Loaded {len(clubs)} clubs, {len(shots)} shots, {len(courses)} courses[/]",
        title="Seed",
    ))
    if stale:
        console.print(f"[yellow]{stale} cached plan(s) now stale. Run 'course-caddie regenerate'.[/]")


@cli.command()
def distributions():
    """Show carry and dispersion for every club in the bag."""
    config = get_config()
    db = _open_db()
    dists = build_bag_distributions(db.get_clubs(), db.get_shots(), config.dispersion_floor_yards)

    if not dists:
        console.print("[yellow]No clubs with enough data yet.[/]")
        return

    table = Table(title="Club Distributions", box=box.ROUNDED)
    table.add_column("Club", style="cyan")
    table.add_column("Carry", justify="right")
    table.add_column("± Carry", justify="right")
    table.add_column("Offline", justify="right")
    table.add_column("± Offline", justify="right")
    table.add_column("Shape")
    table.add_column("Source")

    for d in dists:
        table.add_row(
            d.club_name,
            f"{d.mean_carry:.0f}",
            f"{d.std_carry:.1f}",
            f"{d.mean_offline:+.1f}",
            f"{d.std_offline:.1f}",
            d.dominant_shape or "-",
            "[yellow]imputed[/]" if d.imputed else "[green]shots[/]",
        )

    console.print(table)


@cli.command()
@click.argument("course_id")
@click.argument("hole_number", type=int)
@simulation_options
def hole(course_id: str, hole_number: int, tee: str, mode: str, trials: int, seed: int):
    """Rank strategies for one hole."""
    config = get_config()
    db = _open_db()
    course = _load_course(db, course_id)

    target = next((h for h in course.holes if h.hole_number == hole_number), None)
    if not target:
        console.print(f"[red]Hole {hole_number} not found on {course.name}![/]")
        sys.exit(1)

    tee = _default_tee(course, tee)
    dists = build_bag_distributions(db.get_clubs(), db.get_shots(), config.dispersion_floor_yards)
    simulator = get_simulator(seed, trials)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console
    ) as progress:
        task = progress.add_task(f"Simulating hole {hole_number}...", total=None)
        results = simulator.optimize_hole(target, tee, dists, StrategyMode(mode))
        progress.update(task, completed=True)

    if not results:
        console.print("[yellow]No strategies available for this hole.[/]")
        return

    table = Table(
        title=f"{course.name} #{hole_number} - Par {target.par}, {target.playing_distance(tee)}y",
        box=box.ROUNDED,
    )
    table.add_column("#", style="dim")
    table.add_column("Strategy", style="cyan")
    table.add_column("Clubs")
    table.add_column("xS", justify="right", style="green")
    table.add_column("Birdie", justify="right")
    table.add_column("Blow-up", justify="right")

    for i, r in enumerate(results, 1):
        table.add_row(
            str(i),
            f"{r.strategy_name} ({r.strategy_type.value})",
            r.label,
            f"{r.expected_strokes:.2f}",
            f"{(r.score_distribution.eagle + r.score_distribution.birdie) * 100:.0f}%",
            f"{r.blowup_risk * 100:.0f}%",
        )

    console.print(table)

    best = results[0]
    for aim in best.aim_points:
        note = f" [dim]({aim.carry_note})[/]" if aim.carry_note else ""
        console.print(f"  {aim.shot_number}. {aim.club_name} {aim.carry}y{note}: {aim.tip}")


@cli.command()
@click.argument("course_id")
@simulation_options
def plan(course_id: str, tee: str, mode: str, trials: int, seed: int):
    """Generate, cache and show a full-round game plan."""
    db = _open_db()
    course = _load_course(db, course_id)
    tee = _default_tee(course, tee)

    manager = PlanCacheManager(db=db)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console
    ) as progress:
        task = progress.add_task(f"Planning {course.name} ({len(course.holes)} holes)...", total=None)
        game_plan = manager.generate_plan(course_id, tee, StrategyMode(mode), get_simulator(seed, trials))
        progress.update(task, completed=True)

    table = Table(title=f"{game_plan.course_name} - {tee} tees ({game_plan.mode.value})", box=box.ROUNDED)
    table.add_column("Hole", justify="right")
    table.add_column("Par", justify="right")
    table.add_column("Yds", justify="right")
    table.add_column("Strategy", style="cyan")
    table.add_column("Clubs")
    table.add_column("xS", justify="right")

    for h in game_plan.holes:
        style = TIER_STYLES[h.risk_tier]
        marker = " *" if h.hole_number in game_plan.key_holes else ""
        table.add_row(
            f"{h.hole_number}{marker}",
            str(h.par),
            str(h.plays_like_yardage or h.yardage),
            h.strategy.strategy_name,
            h.strategy.label,
            f"[{style}]{h.strategy.expected_strokes:.2f}[/]",
        )

    console.print(table)

    b = game_plan.breakdown
    console.print(Panel.fit(
        f"[bold]Expected score:[/] {game_plan.total_expected:.1f}   "
        f"[bold]Plays like:[/] {game_plan.total_plays_like}y\n"
        f"Birdie+ {(b.eagle + b.birdie) * 100:.0f}%  Par {b.par * 100:.0f}%  "
        f"Bogey {b.bogey * 100:.0f}%  Double+ {(b.double + b.worse) * 100:.0f}%\n"
        f"[bold]Key holes:[/] {', '.join(str(n) for n in game_plan.key_holes) or '-'}",
        title="Round",
    ))


@cli.command("mark-stale")
@click.argument("reason")
@click.option("--course", "-c", "course_id", default=None, help="Only this course's plans")
def mark_stale(reason: str, course_id: Optional[str]):
    """Flag cached plans as needing regeneration."""
    db = _open_db()
    count = db.mark_stale(reason, course_id)
    console.print(f"[yellow]Marked {count} plan(s) stale.[/]")


@cli.command()
@click.option("--trials", "-n", type=int, default=None, help="Trials per strategy")
@click.option("--seed", type=int, default=None, help="RNG seed for repeatable results")
def regenerate(trials: int, seed: int):
    """Regenerate every stale cached plan now."""
    db = _open_db()
    manager = PlanCacheManager(db=db, simulator_factory=lambda: get_simulator(seed, trials))
    count = manager.regenerate_stale_plans()
    console.print(f"[green]Regenerated {count} plan(s).[/]")


@cli.command()
@click.argument("course_id")
@click.argument("tee")
@click.argument("mode", type=MODE_CHOICE)
def history(course_id: str, tee: str, mode: str):
    """List past game plan snapshots, newest first."""
    db = _open_db()
    entries = db.list_plan_history(course_id, tee, StrategyMode(mode))

    if not entries:
        console.print("[yellow]No history yet.[/]")
        return

    table = Table(title=f"Plan History - {course_id} ({tee}/{mode})", box=box.ROUNDED)
    table.add_column("When", style="dim")
    table.add_column("xS", justify="right", style="green")
    table.add_column("Trigger")
    table.add_column("ID", style="dim")

    for e in entries:
        table.add_row(e.created_at[:19], f"{e.total_expected:.1f}", e.trigger_reason or "-", e.id[:8])

    console.print(table)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
