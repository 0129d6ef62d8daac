"""
Heated Bed Simulator - Grid Model
=================================
Layered voxel grid of the bed stack.

Cells are stored in flat float64 buffers indexed layer-major, then row-major:
``index = layer * count_x * count_y + y * count_x + x``. Layer 0 is the
heater, the last layer is the build surface.

Everything that does not change between resets (per-cell heat capacity,
the conduction matrix, boundary exchange areas) is assembled here once so
the stepper only does array arithmetic per sub-step.

Author: Heated Bed Thermal Simulation Tool
Version: 1.0.0
"""

import math
from typing import List, Sequence, Tuple

import numpy as np
from scipy import sparse

from ..core.constants import Layer
from ..utils.logger import get_logger


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive values."""
    return int(math.floor(value + 0.5))


def truncate_cells(value: float) -> int:
    """
    Truncate a cell count. Quotients that land just below an integer from
    float error (0.29 / 0.005 = 57.99999999999999) count as that integer.
    """
    return int(math.floor(value + 1e-9))


def in_plane_conductance(layer: Layer, resolution_xy: float) -> float:
    """
    Conductance [W/K] between two horizontally adjacent cells of one layer.

    G = k * A / dx with A = resolution * thickness and dx = resolution.
    """
    area = resolution_xy * layer.thickness
    return layer.material.conductivity * area / resolution_xy


def cross_layer_conductance(lower: Layer, upper: Layer, resolution_xy: float) -> float:
    """
    Conductance [W/K] between vertically adjacent cells of two layers.

    Each cell contributes the resistance of its half thickness; the two
    halves are in series, so the conductance is the harmonic combination.
    """
    r_lower = 0.5 * lower.thickness / lower.material.conductivity
    r_upper = 0.5 * upper.thickness / upper.material.conductivity
    return resolution_xy * resolution_xy / (r_lower + r_upper)


class ThermalGrid:
    """
    Voxel grid of a layered heated bed.

    Attributes:
        count_x, count_y: cells along X and Y (rounded plate / resolution)
        heater_count_x, heater_count_y: heater footprint in cells (truncated)
        temperatures: cell temperatures [°C], mutated by the stepper
        dq: per-cell heat delta scratch buffer [J]
        capacity: per-cell heat capacity [J/K]
        conductivity: per-cell conductivity of the owning layer [W/(m·K)]
        conduction_matrix: sparse conductance Laplacian [W/K]
        area_top, area_bottom: boundary face area per cell exchanging with
            the top and bottom convection coefficients [m²]
        emissivity: per-cell surface emissivity of the owning layer
    """

    def __init__(self, plate_width: float, plate_height: float,
                 heater_width: float, heater_height: float,
                 resolution_xy: float, layers: Sequence[Layer],
                 ambient_temperature: float):
        self.logger = get_logger()
        self.reset(plate_width, plate_height, heater_width, heater_height,
                   resolution_xy, layers, ambient_temperature)

    def reset(self, plate_width: float, plate_height: float,
              heater_width: float, heater_height: float,
              resolution_xy: float, layers: Sequence[Layer],
              ambient_temperature: float):
        """
        Allocate the grid for a new configuration.

        The plate is assumed to be evenly divisible by the resolution; plate
        extents are rounded while the heater footprint is truncated. The
        caller guarantees positive sizes and a heater no larger than the
        plate.
        """
        self.size_x = plate_width
        self.size_y = plate_height
        self.heater_size_x = heater_width
        self.heater_size_y = heater_height
        self.resolution_xy = resolution_xy
        self.layers: List[Layer] = list(layers)
        self.layer_count = len(self.layers)

        self.count_x = round_half_up(plate_width / resolution_xy)
        self.count_y = round_half_up(plate_height / resolution_xy)
        self.heater_count_x = truncate_cells(heater_width / resolution_xy)
        self.heater_count_y = truncate_cells(heater_height / resolution_xy)

        self.cells_per_layer = self.count_x * self.count_y
        self.n_cells = self.cells_per_layer * self.layer_count

        self.temperatures = np.full(self.n_cells, ambient_temperature, dtype=np.float64)
        self.dq = np.zeros(self.n_cells, dtype=np.float64)

        self._build_material_fields()
        self._build_heater_footprint()
        self._build_conduction_matrix()
        self._build_boundary_areas()

        self.logger.log_grid_stats(self.count_x, self.count_y, self.layer_count,
                                   self.heater_count_x, self.heater_count_y)

    def _build_material_fields(self):
        cell_area = self.resolution_xy * self.resolution_xy
        capacity = np.empty(self.n_cells, dtype=np.float64)
        conductivity = np.empty(self.n_cells, dtype=np.float64)
        emissivity = np.empty(self.n_cells, dtype=np.float64)

        for l, layer in enumerate(self.layers):
            cells = slice(l * self.cells_per_layer, (l + 1) * self.cells_per_layer)
            material = layer.material
            capacity[cells] = material.capacity * material.density * cell_area * layer.thickness
            conductivity[cells] = material.conductivity
            emissivity[cells] = material.emissivity

        self.capacity = capacity
        self.conductivity = conductivity
        self.emissivity = emissivity

    def _build_heater_footprint(self):
        """Flat indices of the centred heater rectangle on layer 0."""
        self.heater_start_x = (self.count_x - self.heater_count_x) // 2
        self.heater_start_y = (self.count_y - self.heater_count_y) // 2

        xs = np.arange(self.heater_start_x, self.heater_start_x + self.heater_count_x)
        ys = np.arange(self.heater_start_y, self.heater_start_y + self.heater_count_y)
        yy, xx = np.meshgrid(ys, xs, indexing='ij')
        self.heater_indices = (yy * self.count_x + xx).ravel()

    def _layer_index_grid(self, layer: int) -> np.ndarray:
        """Flat indices of one layer as a (count_y, count_x) array."""
        start = layer * self.cells_per_layer
        return np.arange(start, start + self.cells_per_layer).reshape(self.count_y, self.count_x)

    def _build_conduction_matrix(self):
        """
        Assemble the symmetric conductance Laplacian from neighbour pairs.

        Every pair (i, j, G) contributes +G on both diagonals and -G off the
        diagonal, so -K @ T gives the net conductive inflow of each cell and
        the columns sum to zero (what leaves one cell enters its neighbour).
        """
        pair_i, pair_j, pair_g = [], [], []

        for l, layer in enumerate(self.layers):
            idx = self._layer_index_grid(l)
            g_plane = in_plane_conductance(layer, self.resolution_xy)

            # x + 1 neighbours
            pair_i.append(idx[:, :-1].ravel())
            pair_j.append(idx[:, 1:].ravel())
            pair_g.append(np.full(idx[:, :-1].size, g_plane))

            # y + 1 neighbours
            pair_i.append(idx[:-1, :].ravel())
            pair_j.append(idx[1:, :].ravel())
            pair_g.append(np.full(idx[:-1, :].size, g_plane))

            # layer + 1 neighbours
            if l < self.layer_count - 1:
                g_cross = cross_layer_conductance(layer, self.layers[l + 1], self.resolution_xy)
                pair_i.append(idx.ravel())
                pair_j.append(idx.ravel() + self.cells_per_layer)
                pair_g.append(np.full(idx.size, g_cross))

        i = np.concatenate(pair_i) if pair_i else np.empty(0, dtype=np.int64)
        j = np.concatenate(pair_j) if pair_j else np.empty(0, dtype=np.int64)
        g = np.concatenate(pair_g) if pair_g else np.empty(0, dtype=np.float64)

        rows = np.concatenate([i, j, i, j])
        cols = np.concatenate([i, j, j, i])
        data = np.concatenate([g, g, -g, -g])

        self.conduction_matrix = sparse.csr_matrix(
            (data, (rows, cols)),
            shape=(self.n_cells, self.n_cells),
            dtype=np.float64
        )

        self.logger.debug(f"Conduction matrix: {self.conduction_matrix.nnz} non-zeros, {g.size} pairs")

    def _build_boundary_areas(self):
        """
        Boundary face area per cell, split by which convection coefficient
        applies. Side edges exchange with the top coefficient. A cell on
        several faces accumulates each face's area.
        """
        area_top = np.zeros((self.layer_count, self.count_y, self.count_x), dtype=np.float64)
        area_bottom = np.zeros_like(area_top)
        cell_area = self.resolution_xy * self.resolution_xy

        area_top[-1] += cell_area
        area_bottom[0] += cell_area

        for l, layer in enumerate(self.layers):
            side_area = self.resolution_xy * layer.thickness
            area_top[l, 0, :] += side_area  # front edge
            area_top[l, -1, :] += side_area  # back edge
            area_top[l, :, 0] += side_area  # left edge
            area_top[l, :, -1] += side_area  # right edge

        self.area_top = area_top.ravel()
        self.area_bottom = area_bottom.ravel()

    def index_of(self, x: int, y: int, layer: int) -> int:
        """Flat index of grid cell (x, y, layer)."""
        return layer * self.count_x * self.count_y + y * self.count_x + x

    def layer_at_height(self, z: float) -> int:
        """Layer containing height z [m] above the bottom; the top layer if above the stack."""
        layer_index = 0
        height = 0.0
        while layer_index < self.layer_count - 1:
            height += self.layers[layer_index].thickness
            if z < height:
                break
            layer_index += 1
        return layer_index

    def grid_coordinates(self, x: float, y: float, z: float) -> Tuple[int, int, int]:
        """Nearest grid cell of a world-space point, clamped to the grid."""
        xx = min(max(round_half_up(x / self.resolution_xy), 0), self.count_x - 1)
        yy = min(max(round_half_up(y / self.resolution_xy), 0), self.count_y - 1)
        return xx, yy, self.layer_at_height(z)

    def temperature_at(self, x: float, y: float, z: float) -> float:
        """Temperature [°C] of the cell nearest to world coordinates in metres."""
        xx, yy, layer = self.grid_coordinates(x, y, z)
        return float(self.temperatures[self.index_of(xx, yy, layer)])

    def temperature_at_grid(self, x: int, y: int, layer: int) -> float:
        """Temperature [°C] of a grid cell, indices clamped to the grid."""
        xx = min(max(x, 0), self.count_x - 1)
        yy = min(max(y, 0), self.count_y - 1)
        ll = min(max(layer, 0), self.layer_count - 1)
        return float(self.temperatures[self.index_of(xx, yy, ll)])

    def temperature_field(self) -> np.ndarray:
        """Copy of the temperatures shaped (layer, y, x)."""
        return self.temperatures.reshape(self.layer_count, self.count_y, self.count_x).copy()

    def total_energy(self) -> float:
        """Stored heat relative to 0 °C [J]."""
        return float(np.dot(self.temperatures, self.capacity))

    @property
    def heater_area(self) -> float:
        """Physical heater area [m²]."""
        return self.heater_size_x * self.heater_size_y

    @property
    def stack_height(self) -> float:
        return sum(layer.thickness for layer in self.layers)


__all__ = [
    'ThermalGrid',
    'in_plane_conductance',
    'cross_layer_conductance',
    'round_half_up',
    'truncate_cells',
]
