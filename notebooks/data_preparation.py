import marimo

__generated_with = "0.16.5"
app = marimo.App(width="full")


@app.cell(hide_code=True)
def _(mo):
    mo.md(
        r"""
    # Multi-Robot Dataset Preparation

    **Objectives**:
    - Synchronise the robots of a MRCLAM dataset onto one shared clock
    - Derive the groundtruth odometry and range-bearing measurements
    - Characterise the sensor error of every robot
    - Generate a synthetic dataset with known noise and compare

    **Interactive Controls**: pick a dataset (or the simulator), a robot and the
    processing parameters below. Every figure updates automatically.
    """
    )
    return


@app.cell(hide_code=True)
def _():
    import logging

    # Data manipulation and visualization
    import matplotlib.pyplot as plt
    import plotly.graph_objects as go
    import seaborn as sns

    logging.basicConfig(level=logging.INFO)
    return go, plt, sns


@app.cell
def _():
    from mrclam_prep.pipeline import load_dataset, process_dataset, simulate
    from mrclam_prep.utils.data_utils import error_statistics_frame, to_dataframes
    from mrclam_prep.utils.metrics import compute_dataset_metrics
    from mrclam_prep.visualization import marimo_helpers as mh
    from mrclam_prep.visualization import plots
    return (
        compute_dataset_metrics,
        error_statistics_frame,
        load_dataset,
        mh,
        plots,
        process_dataset,
        simulate,
        to_dataframes,
    )


@app.cell(hide_code=True)
def _(mo):
    mo.md(
        r"""
    ## Part 1: Data Source

    The **MRCLAM dataset** holds five robots logging groundtruth (Vicon, 100 Hz),
    odometry (~67 Hz) and barcode measurements (event driven) in a 15m × 8m arena
    with 15 landmarks. Selecting **Simulation** generates the same data procedurally.
    """
    )
    return


@app.cell
def _(mh):
    dataset_selector = mh.create_dataset_selector(default="MRCLAM_Dataset1")
    period_slider = mh.create_sample_period_slider()
    outlier_sliders = mh.create_outlier_sliders()
    bin_size_slider = mh.create_bin_size_slider()
    simulation_controls = mh.create_simulation_controls()

    mh.build_control_panel(
        {
            "## Data": None,
            "Dataset": dataset_selector,
            "Sample period": period_slider,
            "## Outlier rejection": None,
            "Range": outlier_sliders["range"],
            "Bearing": outlier_sliders["bearing"],
            "PDF bin size": bin_size_slider,
            "## Simulation": None,
            **{name: widget for name, widget in simulation_controls.items()},
        }
    )
    return (
        bin_size_slider,
        dataset_selector,
        outlier_sliders,
        period_slider,
        simulation_controls,
    )


@app.cell
def _(
    bin_size_slider,
    dataset_selector,
    load_dataset,
    mh,
    outlier_sliders,
    period_slider,
    process_dataset,
    simulate,
    simulation_controls,
):
    statistics_config = mh.statistics_config_from(outlier_sliders, bin_size_slider)
    if dataset_selector.value == "Simulation":
        dataset = simulate(mh.simulation_config_from(simulation_controls), statistics_config)
    else:
        dataset = process_dataset(
            load_dataset(f"data/{dataset_selector.value}", period_slider.value),
            mh.sync_config_from(period_slider),
            statistics_config,
        )
    dataset
    return dataset, statistics_config


@app.cell
def _(dataset, mh):
    robot_selector = mh.create_robot_selector(dataset.number_of_robots)
    robot_selector
    return (robot_selector,)


@app.cell(hide_code=True)
def _(mo):
    mo.md(r"""## Part 2: Trajectories and Landmarks""")
    return


@app.cell
def _(dataset, plots):
    plots.plot_dataset(dataset)
    return


@app.cell(hide_code=True)
def _(dataset, go, robot_selector, to_dataframes):
    # Interactive map: hover over points for details, zoom/pan to explore
    states = to_dataframes(dataset.robot(robot_selector.value))["groundtruth"]["states"]
    fig_map = go.Figure()
    fig_map.add_trace(
        go.Scatter(
            x=states["x"],
            y=states["y"],
            mode="lines",
            name=f"Robot {robot_selector.value}",
            hovertemplate="X: %{x:.2f}m<br>Y: %{y:.2f}m<extra></extra>",
        )
    )
    fig_map.add_trace(
        go.Scatter(
            x=[landmark.x for landmark in dataset.landmarks],
            y=[landmark.y for landmark in dataset.landmarks],
            mode="markers+text",
            text=[str(landmark.id) for landmark in dataset.landmarks],
            textposition="top center",
            name="Landmarks",
            marker=dict(size=12, color="black", symbol="star", opacity=0.4),
        )
    )
    fig_map.update_layout(yaxis=dict(scaleanchor="x"), height=500)
    fig_map
    return


@app.cell(hide_code=True)
def _(mo):
    mo.md(
        r"""
    ## Part 3: Synced vs Groundtruth

    Odometry and measurements are compared against the values derived from the
    synchronised groundtruth poses.
    """
    )
    return


@app.cell
def _(dataset, plots, robot_selector):
    plots.plot_odometry(dataset.robot(robot_selector.value))
    return


@app.cell
def _(dataset, plots, robot_selector):
    plots.plot_measurements(dataset.robot(robot_selector.value))
    return


@app.cell(hide_code=True)
def _(mo):
    mo.md(
        r"""
    ## Part 4: Sensor Error

    The error of each channel is groundtruth minus synced. Measurement outliers
    (mostly barcode misreadings) are removed with the IQR rule before the mean and
    variance are computed.
    """
    )
    return


@app.cell
def _(dataset, plots, robot_selector, statistics_config):
    plots.plot_error_distributions(dataset.robot(robot_selector.value), statistics_config)
    return


@app.cell
def _(dataset, error_statistics_frame):
    error_table = error_statistics_frame(dataset)
    error_table
    return (error_table,)


@app.cell
def _(error_table, plt, sns):
    _fig, _ax = plt.subplots(figsize=(8, 4))
    sns.barplot(
        data=error_table.reset_index(), x="channel", y="variance", hue="robot", ax=_ax
    )
    _ax.set_yscale("log")
    _ax.set_title("Error variance per robot")
    _fig
    return


@app.cell
def _(compute_dataset_metrics, dataset):
    compute_dataset_metrics(dataset)
    return


@app.cell
def _():
    import marimo as mo
    return (mo,)


if __name__ == "__main__":
    app.run()
