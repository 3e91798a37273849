import nox


@nox.session(python=["3.10", "3.11"])
def tests(session):
    session.install("-e", ".[test]")
    session.run(
        "coverage",
        "run",
        "-m",
        "pytest",
        "--benchmark-warmup",
        "on",
        "--benchmark-disable-gc",
    )
    session.run("coverage", "report")


@nox.session(python=["3.10"])
def tests_tfp(session):
    session.install("-e", ".[test,tfp]")
    session.run("pytest", "tests/test_tfp.py")


@nox.session
def lint(session):
    session.install("black", "autoflake8", "flake8")
    session.run("black", ".")
    session.run(
        "autoflake8",
        "--in-place",
        "--recursive",
        "--exclude",
        "__init__.py",
        ".",
    )
    session.run("flake8", "soss", "tests")
