"""Extract the node topology of a pipeline network: print statistics, export a node CSV, and plot the network.

This script uses the pipeline_topology library for acquisition and topology
extraction and adds CSV/plot output on top.
"""

import argparse
import asyncio
import csv
import logging
import sys
from pathlib import Path

import matplotlib.pyplot as plt

from pipeline_topology import (
    AcquisitionError,
    TopologyModel,
    build_topology,
    fetch_feature_collection,
    load_feature_collection,
    read_kmz,
    read_shapefile,
    read_shapefile_zip,
)
from pipeline_topology.config import configure_logging, get_settings
from pipeline_topology.server import NODE_FIELDS, node_row

logger = logging.getLogger("extract_topology")

LINE_COLOR = "#3498db"
JUNCTION_COLOR = "#f39c12"
ENDPOINT_COLOR = "#e74c3c"


def load_input(source: str) -> dict:
    """Acquire a feature collection from a URL, GeoJSON, KML/KMZ, zip or shapefile path."""
    if source.startswith(("http://", "https://")):
        return asyncio.run(fetch_feature_collection(source, timeout=get_settings().fetch_timeout_s))

    path = Path(source)
    suffix = path.suffix.lower()
    if suffix in (".kml", ".kmz"):
        return read_kmz(str(path))
    if suffix == ".zip":
        return read_shapefile_zip(path.read_bytes())
    if suffix == ".shp":
        return read_shapefile(path)
    return load_feature_collection(path)


def export_csv(model: TopologyModel, path: Path) -> None:
    """Write the node table to a CSV file."""
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=NODE_FIELDS)
        writer.writeheader()
        writer.writerows(node_row(node) for node in model.nodes)
    print(f"CSV exported: {path}")


def plot_network(model: TopologyModel, path: Path, title: str = "Pipeline Network Topology") -> None:
    """Plot segments with endpoints and junctions marked."""
    fig, ax = plt.subplots(figsize=(12, 10))

    for segment in model.segments:
        lngs = [c[0] for c in segment.coordinates]
        lats = [c[1] for c in segment.coordinates]
        ax.plot(lngs, lats, color=LINE_COLOR, linewidth=1.5, alpha=0.8)

    endpoints = model.endpoints()
    junctions = model.junctions()
    if endpoints:
        ax.scatter(
            [n.lng for n in endpoints], [n.lat for n in endpoints],
            s=16, color=ENDPOINT_COLOR, edgecolors="white", zorder=3, label=f"Endpoint ({len(endpoints)})",
        )
    if junctions:
        ax.scatter(
            [n.lng for n in junctions], [n.lat for n in junctions],
            s=36, color=JUNCTION_COLOR, edgecolors="white", zorder=4, label=f"Junction ({len(junctions)})",
        )

    ax.set_xlabel("Longitude (°)")
    ax.set_ylabel("Latitude (°)")
    ax.set_title(title)
    ax.set_aspect("equal", adjustable="datalim")
    ax.grid(True, alpha=0.3)
    if endpoints or junctions:
        ax.legend()
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)
    print(f"Plot saved: {path}")


def print_summary(model: TopologyModel) -> None:
    stats = model.statistics
    print(f"Features:      {stats.total_features:,} ({len(model.skipped):,} skipped)")
    print(f"  LineString:      {stats.kind_counts.line_string:,}")
    print(f"  MultiLineString: {stats.kind_counts.multi_line_string:,}")
    print(f"Lines:         {stats.line_count:,}")
    print(f"Segments:      {len(model.segments):,}")
    print(f"Nodes:         {stats.node_count:,}")
    print(f"  Junctions:       {stats.junction_count:,}")
    print(f"  Endpoints:       {stats.endpoint_count:,}")
    print(f"Total length:  {stats.total_length_km:,.3f} km")

    box = stats.bounding_box
    if box is not None:
        lat, lng = box.center
        print(f"Center:        {lat:.6f}°, {lng:.6f}°")
        print(f"Coverage:      {box.coverage_deg2:.4f}°²  ({box.area_km2:,.2f} km²)")
    print()


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("source", help="GeoJSON/KML/KMZ/zip/shapefile path or http(s) URL")
    parser.add_argument("--nodes-csv", type=Path, default=Path("pipeline_nodes.csv"))
    parser.add_argument("--plot", type=Path, default=Path("pipeline_network.png"))
    parser.add_argument("--no-plot", action="store_true")
    args = parser.parse_args(argv)

    configure_logging(get_settings().log_level)

    print(f"Reading: {args.source}\n")
    try:
        collection = load_input(args.source)
    except (AcquisitionError, OSError) as exc:
        logger.error("Could not load %s: %s", args.source, exc)
        return 1

    model = build_topology(collection)
    print_summary(model)

    export_csv(model, args.nodes_csv)
    if not args.no_plot:
        plot_network(model, args.plot)
    return 0


if __name__ == "__main__":
    sys.exit(main())
