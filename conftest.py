pytest_plugins = [
    "tests.fixtures.aws_fixtures",
    "tests.fixtures.project_fixtures",
]
