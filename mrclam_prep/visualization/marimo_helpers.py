"""
Marimo UI widget helpers for the data preparation parameters.

Provides widget factories for the dataset, robot, synchronisation, outlier and
simulation parameters, and converts widget values back into configuration
objects. All widgets are designed to work with Marimo's reactive execution
model.

Example:
    import marimo as mo
    from mrclam_prep.visualization.marimo_helpers import (
        create_dataset_selector,
        create_outlier_sliders,
        outlier_config_from,
    )

    # Create reactive controls
    dataset = create_dataset_selector()
    outliers = create_outlier_sliders()

    # Use in dependent cell
    config = StatisticsConfig(outliers=outlier_config_from(outliers))
"""

import marimo as mo

from mrclam_prep.config import (
    ArenaLimits,
    OutlierConfig,
    SimulationConfig,
    StatisticsConfig,
    SyncConfig,
)


def create_parameter_slider(
    name: str,
    min_val: float,
    max_val: float,
    default: float,
    step: float | None = None,
) -> mo.ui.slider:
    """
    Create a parameter slider with its value shown.

    Args:
        name: Slider label (e.g., "Sample period (s)")
        min_val: Minimum slider value
        max_val: Maximum slider value
        default: Default/initial value
        step: Step size (default: (max-min)/100)

    Returns:
        Marimo slider widget with show_value=True
    """
    if step is None:
        step = (max_val - min_val) / 100

    return mo.ui.slider(
        min_val,
        max_val,
        value=default,
        step=step,
        label=name,
        show_value=True,
    )


def create_dataset_selector(
    datasets: list[str] | None = None, default: str | None = None
) -> mo.ui.dropdown:
    """
    Create dropdown for the data source: a MRCLAM dataset or the simulator.

    Args:
        datasets: List of dataset names (default: MRCLAM_Dataset1-9 and "Simulation")
        default: Default selection (default: first dataset)

    Returns:
        Marimo dropdown widget

    Example:
        dataset = create_dataset_selector()
        # In dependent cell:
        if dataset.value != "Simulation":
            path = f"data/{dataset.value}"
    """
    if datasets is None:
        datasets = [f"MRCLAM_Dataset{i}" for i in range(1, 10)] + ["Simulation"]

    if default is None:
        default = datasets[0]

    return mo.ui.dropdown(datasets, label="Dataset", value=default)


def create_robot_selector(number_of_robots: int = 5, default: int = 1) -> mo.ui.dropdown:
    """
    Create dropdown for robot selection.

    Args:
        number_of_robots: Number of robots in the dataset
        default: Default robot ID

    Returns:
        Marimo dropdown widget mapping "Robot<i>" to the robot ID

    Example:
        robot = create_robot_selector()
        plot_odometry(dataset.robot(robot.value))
    """
    robots = {f"Robot{i}": i for i in range(1, number_of_robots + 1)}
    return mo.ui.dropdown(robots, label="Robot", value=f"Robot{default}")


def create_sample_period_slider(default: float = 0.02) -> mo.ui.slider:
    """
    Create slider for the synchronised sample period.

    Example:
        period = create_sample_period_slider()
        synchronize(dataset, sync_config_from(period))
    """
    return create_parameter_slider("Sample period (s)", 0.01, 0.2, default, 0.01)


def sync_config_from(period_slider) -> SyncConfig:
    return SyncConfig(sample_period=period_slider.value)


def create_outlier_sliders(
    range_default: float = 10.0,
    bearing_default: float = 20.0,
    max_val: float = 50.0,
) -> dict[str, mo.ui.slider]:
    """
    Create sliders for the IQR outlier multipliers.

    Args:
        range_default: Default range multiplier
        bearing_default: Default bearing multiplier
        max_val: Maximum slider value

    Returns:
        Dictionary with keys 'range', 'bearing'
    """
    return {
        "range": create_parameter_slider("Range IQR multiplier", 0.5, max_val, range_default, 0.5),
        "bearing": create_parameter_slider(
            "Bearing IQR multiplier", 0.5, max_val, bearing_default, 0.5
        ),
    }


def outlier_config_from(sliders: dict) -> OutlierConfig:
    return OutlierConfig(
        range_multiplier=sliders["range"].value,
        bearing_multiplier=sliders["bearing"].value,
    )


def create_bin_size_slider(default: float = 0.001) -> mo.ui.slider:
    """Create slider for the histogram bin width of the error PDFs."""
    return create_parameter_slider("PDF bin size", 0.0005, 0.02, default, 0.0005)


def statistics_config_from(outlier_sliders: dict, bin_size_slider) -> StatisticsConfig:
    return StatisticsConfig(
        outliers=outlier_config_from(outlier_sliders),
        histogram_bin_size=bin_size_slider.value,
    )


def create_simulation_controls(
    data_points_default: int = 10000,
    max_data_points: int = 50000,
    config: SimulationConfig | None = None,
) -> dict:
    """
    Create widgets for the simulator parameters.

    Args:
        data_points_default: Default number of simulated steps
        max_data_points: Maximum number of simulated steps
        config: Configuration whose values are used as the remaining defaults

    Returns:
        Dictionary with keys 'data_points', 'robots', 'landmarks', 'width',
        'height', 'max_range' and 'seed'

    Example:
        controls = create_simulation_controls()
        dataset = simulate(simulation_config_from(controls))
    """
    if config is None:
        config = SimulationConfig()

    return {
        "data_points": mo.ui.slider(
            1000,
            max_data_points,
            value=data_points_default,
            step=1000,
            label="Data points",
            show_value=True,
        ),
        "robots": mo.ui.slider(
            1, 10, value=config.number_of_robots, step=1, label="Robots", show_value=True
        ),
        "landmarks": mo.ui.slider(
            0, 30, value=config.number_of_landmarks, step=1, label="Landmarks", show_value=True
        ),
        "width": create_parameter_slider("Arena width (m)", 5.0, 30.0, config.limits.width, 0.5),
        "height": create_parameter_slider("Arena height (m)", 5.0, 30.0, config.limits.height, 0.5),
        "max_range": create_parameter_slider("Max range (m)", 1.0, 10.0, config.max_range, 0.5),
        "seed": mo.ui.number(start=0, stop=2**31 - 1, value=0, label="Seed"),
    }


def simulation_config_from(controls: dict) -> SimulationConfig:
    defaults = SimulationConfig()
    return SimulationConfig(
        data_points=int(controls["data_points"].value),
        number_of_robots=int(controls["robots"].value),
        number_of_landmarks=int(controls["landmarks"].value),
        limits=ArenaLimits(
            width=controls["width"].value,
            height=controls["height"].value,
            forward_velocity=defaults.limits.forward_velocity,
            angular_velocity=defaults.limits.angular_velocity,
        ),
        max_range=controls["max_range"].value,
        seed=int(controls["seed"].value),
    )


def create_time_scrubber(max_timesteps: int, default: int = 0) -> mo.ui.slider:
    """
    Create a time scrubber slider for trajectory playback.

    Example:
        time_slider = create_time_scrubber(len(robot.groundtruth.states))
        # In dependent cell:
        trajectory_up_to_now = robot.groundtruth.states[:time_slider.value + 1]
    """
    return mo.ui.slider(
        0,
        max_timesteps - 1,
        value=default,
        step=1,
        label="Trajectory Progress",
        show_value=True,
    )


def build_control_panel(widgets: dict):
    """
    Build a vertical control panel from widgets.

    Args:
        widgets: Dictionary of {label: widget}. Labels starting with "##" are
            rendered as section headers and their widget is ignored.

    Returns:
        Marimo vstack containing the widgets

    Example:
        controls = build_control_panel({
            "## Data": None,
            "Dataset": dataset_selector,
            "Robot": robot_selector,
        })
    """
    elements = []
    for label, widget in widgets.items():
        if label.startswith("##"):  # Section header
            elements.append(mo.md(label))
        else:
            elements.append(widget)

    return mo.vstack(elements)
