# type: ignore
import os

from invoke import task


@task
def venv(ctx):
    """Create .venv and install wledpro with its test and dev extras."""
    ctx.run("uv sync --extra test --extra dev")


@task
def lint(ctx):
    """
    Static analysis: ruff lint and format check on sources and tests, mypy on sources.
    """
    ctx.run("ruff check src tests", pty=True)
    ctx.run("ruff format --check src tests", pty=True)
    ctx.run("mypy src", pty=True)


@task
def format(ctx):
    """Apply ruff formatting."""
    ctx.run("ruff format src tests", pty=True)


@task
def test(ctx):
    """
    Run tests with coverage information.
    """
    ctx.run("pytest --cov=wledpro --cov-report=term-missing", pty=True)


@task(help={"port": "Port for the mock controller", "name": "Advertised name"})
def mock(ctx, port=8080, name="WLED Mock"):
    """Serve a mock WLED controller on this machine and advertise it on mDNS."""
    ctx.run(f'wledpro mock --port {port} --name "{name}"', pty=True)


@task
def build_package(ctx):
    """
    Build sdist and wheel into dist/.
    """
    ctx.run("rm -rf dist")
    ctx.run("uv build")


@task
def release(ctx):
    """Build and publish wledpro to PyPI."""
    token = os.getenv("PYPI_TOKEN")
    if not token:
        raise ValueError("PYPI_TOKEN environment variable is not set")

    ctx.run("invoke build-package")
    ctx.run(f"uv publish --token {token}")
