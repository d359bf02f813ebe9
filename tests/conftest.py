from importlib.resources import files, as_file

import pytest

from stepline.core import Chart, parse_path
import stepline.data.tests


def load_chart(name: str) -> Chart:
    with as_file(files(stepline.data.tests) / name) as p:
        return parse_path(p)


@pytest.fixture()
def simple() -> Chart:
    return load_chart("simple.ssc")


@pytest.fixture()
def holds() -> Chart:
    return load_chart("holds.ssc")


@pytest.fixture()
def stops() -> Chart:
    return load_chart("stops.ssc")
