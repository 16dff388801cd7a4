pytest_plugins = [
    "tests.fixtures.app_fixtures",
    "tests.fixtures.image_fixtures",
    "tests.fixtures.aws_fixtures",
]
