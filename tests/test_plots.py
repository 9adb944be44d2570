import matplotlib.pyplot as plt
import numpy as np
import pytest
from matplotlib.figure import Figure

from mrclam_prep.config import SimulationConfig, StatisticsConfig
from mrclam_prep.data.models import ErrorStatistics
from mrclam_prep.pipeline import simulate
from mrclam_prep.visualization import plots


@pytest.fixture(scope="module")
def dataset():
    return simulate(
        SimulationConfig(data_points=3000, number_of_robots=2, number_of_landmarks=4, seed=3)
    )


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


def test_plot_dataset(dataset):
    fig = plots.plot_dataset(dataset)
    assert isinstance(fig, Figure)
    (ax,) = fig.axes
    assert len(ax.texts) == dataset.number_of_landmarks


def test_plot_dataset_onto_axes(dataset):
    fig, ax = plt.subplots()
    assert plots.plot_dataset(dataset, ax=ax, record_set="raw") is fig


def test_plot_odometry(dataset):
    fig = plots.plot_odometry(dataset.robot(1))
    assert len(fig.axes) == 2


def test_plot_measurements_of_one_subject(dataset):
    landmark = dataset.landmarks[0]
    fig = plots.plot_measurements(dataset.robot(1), subject=landmark.barcode)
    assert f"barcode {landmark.barcode}" in fig.axes[0].get_title()


def test_plot_error_pdf_fits_gaussian():
    values = np.random.default_rng(0).normal(0.0, 0.01, 500)
    fig = plots.plot_error_pdf(values, label="Range error [m]")
    (ax,) = fig.axes
    assert ax.get_xlabel() == "Range error [m]"
    assert len(ax.lines) == 1


def test_plot_error_pdf_with_statistics():
    fig = plots.plot_error_pdf([0.0, 0.001, 0.002], ErrorStatistics(mean=0.001, variance=1e-6))
    assert "N(0.0010" in fig.axes[0].lines[0].get_label()


def test_plot_error_distributions(dataset):
    fig = plots.plot_error_distributions(dataset.robot(2))
    assert len(fig.axes) == 4
    assert "Robot 2" in fig.get_suptitle()


def test_plot_error_distributions_uses_configured_bin_size(dataset):
    fig = plots.plot_error_distributions(
        dataset.robot(1), StatisticsConfig(histogram_bin_size=0.005)
    )
    range_ax = fig.axes[2]
    assert range_ax.patches
    assert all(bar.get_width() == pytest.approx(0.005) for bar in range_ax.patches)
