"""Polyhedron meshes for every die kind and the projection used to draw them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np
from scipy.spatial import ConvexHull

from dice_roller.dice import catalog
from dice_roller.helpers.logging_helper import log_module_import

log_module_import(__name__)

LIGHT_DIRECTION = np.array([0.3, 0.6, 1.0]) / np.linalg.norm([0.3, 0.6, 1.0])
VIEW_DIRECTION = np.array([0.0, 0.0, 1.0])


@dataclass(frozen=True)
class DiceModel:
    vertices: np.ndarray
    faces: List[np.ndarray]


@dataclass(frozen=True)
class ProjectedFace:
    depth: float
    points: List[Tuple[float, float]]
    shade: float


def _normalize_vertices(vertices: np.ndarray) -> np.ndarray:
    max_norm = np.max(np.linalg.norm(vertices, axis=1))
    if max_norm == 0:
        return vertices.copy()
    return vertices / max_norm


def _face_normal(vertices: np.ndarray, face: Sequence[int]) -> np.ndarray:
    v0, v1, v2 = (vertices[int(i)] for i in face[:3])
    return np.cross(v1 - v0, v2 - v0)


def _orient_outward(vertices: np.ndarray, face: Sequence[int]) -> np.ndarray:
    indices = np.array(face, dtype=int)
    centroid = vertices[indices].mean(axis=0)
    if float(np.dot(_face_normal(vertices, indices), centroid)) < 0.0:
        return indices[::-1].copy()
    return indices


def _convex_faces(vertices: np.ndarray) -> List[np.ndarray]:
    hull = ConvexHull(vertices)
    return [face for face in hull.simplices]


def _make_model(vertices: Iterable[Tuple[float, float, float]], predefined_faces: List[List[int]] | None = None) -> DiceModel:
    verts = _normalize_vertices(np.array(list(vertices), dtype=float))
    raw_faces = predefined_faces if predefined_faces else _convex_faces(verts)
    faces = [_orient_outward(verts, face) for face in raw_faces]
    return DiceModel(vertices=verts, faces=faces)


def _cube_vertices() -> List[Tuple[float, float, float]]:
    return [
        (-1, -1, -1),
        (1, -1, -1),
        (1, 1, -1),
        (-1, 1, -1),
        (-1, -1, 1),
        (1, -1, 1),
        (1, 1, 1),
        (-1, 1, 1),
    ]


def _tetra_vertices() -> List[Tuple[float, float, float]]:
    return [
        (1, 1, 1),
        (-1, -1, 1),
        (-1, 1, -1),
        (1, -1, -1),
    ]


def _octa_vertices() -> List[Tuple[float, float, float]]:
    return [
        (1, 0, 0),
        (-1, 0, 0),
        (0, 1, 0),
        (0, -1, 0),
        (0, 0, 1),
        (0, 0, -1),
    ]


def _trapezohedron_vertices() -> List[Tuple[float, float, float]]:
    vertices: List[Tuple[float, float, float]] = [(0.0, 0.0, 1.15), (0.0, 0.0, -1.15)]
    upper_height = 0.45
    lower_height = -0.45
    radius = 0.94
    for i in range(5):
        angle = 2 * np.pi * i / 5
        vertices.append((radius * np.cos(angle), radius * np.sin(angle), upper_height))
    for i in range(5):
        angle = 2 * np.pi * (i + 0.5) / 5
        vertices.append((radius * np.cos(angle), radius * np.sin(angle), lower_height))
    return vertices


def _d10_faces() -> List[List[int]]:
    faces: List[List[int]] = []
    for i in range(5):
        ui = 2 + i
        ui_next = 2 + ((i + 1) % 5)
        li = 7 + i
        li_next = 7 + ((i + 1) % 5)
        faces.append([0, ui, li, ui_next])
        faces.append([1, li, ui_next, li_next])
    return faces


def _dodecahedron_vertices() -> List[Tuple[float, float, float]]:
    phi = (1 + np.sqrt(5)) / 2
    inv_phi = 1 / phi
    vertices: List[Tuple[float, float, float]] = []
    for x in (-1, 1):
        for y in (-1, 1):
            for z in (-1, 1):
                vertices.append((x, y, z))
    for combo in (
        (0, inv_phi, phi),
        (inv_phi, phi, 0),
        (phi, 0, inv_phi),
    ):
        for sx in (1, -1):
            for sy in (1, -1):
                vertices.append((combo[0] * sx, combo[1] * sy, combo[2]))
                vertices.append((combo[0] * sx, combo[1] * sy, -combo[2]))
    unique: List[Tuple[float, float, float]] = []
    seen = set()
    for vertex in vertices:
        key = (round(vertex[0], 6), round(vertex[1], 6), round(vertex[2], 6))
        if key in seen:
            continue
        seen.add(key)
        unique.append(vertex)
    return unique


def _dodecahedron_faces(vertices: np.ndarray) -> List[List[int]]:
    # Merge coplanar hull triangles back into the twelve pentagons.
    hull = ConvexHull(vertices)
    planes: Dict[Tuple[float, ...], set] = {}
    for simplex, equation in zip(hull.simplices, hull.equations):
        key = tuple(np.round(equation, 5))
        planes.setdefault(key, set()).update(int(i) for i in simplex)
    faces: List[List[int]] = []
    for key, members in planes.items():
        normal = np.array(key[:3])
        indices = sorted(members)
        center = vertices[indices].mean(axis=0)
        axis_u = vertices[indices[0]] - center
        axis_v = np.cross(normal, axis_u)
        faces.append(
            sorted(
                indices,
                key=lambda i: float(np.arctan2(np.dot(vertices[i] - center, axis_v), np.dot(vertices[i] - center, axis_u))),
            )
        )
    return faces


def _icosahedron_vertices() -> List[Tuple[float, float, float]]:
    phi = (1 + np.sqrt(5)) / 2
    vertices = []
    for signs in ((1, 0, phi), (-1, 0, phi), (1, 0, -phi), (-1, 0, -phi)):
        vertices.append(signs)
    for signs in ((0, phi, 1), (0, -phi, 1), (0, phi, -1), (0, -phi, -1)):
        vertices.append(signs)
    for signs in ((phi, 1, 0), (-phi, 1, 0), (phi, -1, 0), (-phi, -1, 0)):
        vertices.append(signs)
    return vertices


_CUBE_FACES: List[List[int]] = [
    [0, 1, 2, 3],
    [4, 5, 6, 7],
    [0, 1, 5, 4],
    [2, 3, 7, 6],
    [1, 2, 6, 5],
    [4, 7, 3, 0],
]


def _build_dice_models() -> Dict[str, DiceModel]:
    dodeca = _normalize_vertices(np.array(_dodecahedron_vertices(), dtype=float))
    trapezohedron = _make_model(_trapezohedron_vertices(), _d10_faces())
    models: Dict[str, DiceModel] = {
        "d4": _make_model(_tetra_vertices()),
        "d6": _make_model(_cube_vertices(), _CUBE_FACES),
        "d8": _make_model(_octa_vertices()),
        "d10": trapezohedron,
        "d12": _make_model(dodeca, _dodecahedron_faces(dodeca)),
        "d20": _make_model(_icosahedron_vertices()),
        "d100": trapezohedron,
    }
    return models


DICE_MODELS: Dict[str, DiceModel] = _build_dice_models()


def model_for(die_id: str) -> DiceModel:
    return DICE_MODELS[catalog.lookup(die_id).id]


def rotation_matrix(orientation: Sequence[float]) -> np.ndarray:
    """Rotation matrix for Euler angles applied in XYZ order (``Rx @ Ry @ Rz``)."""

    x, y, z = (float(angle) for angle in orientation)
    cosx, sinx = np.cos(x), np.sin(x)
    cosy, siny = np.cos(y), np.sin(y)
    cosz, sinz = np.cos(z), np.sin(z)

    rx = np.array(
        [
            [1.0, 0.0, 0.0],
            [0.0, cosx, -sinx],
            [0.0, sinx, cosx],
        ]
    )
    ry = np.array(
        [
            [cosy, 0.0, siny],
            [0.0, 1.0, 0.0],
            [-siny, 0.0, cosy],
        ]
    )
    rz = np.array(
        [
            [cosz, -sinz, 0.0],
            [sinz, cosz, 0.0],
            [0.0, 0.0, 1.0],
        ]
    )
    return rx @ ry @ rz


def project_model(model: DiceModel, orientation: Sequence[float], center: Tuple[float, float], scale: float) -> List[ProjectedFace]:
    """Rotate ``model`` and return its visible faces back to front with a Lambert shade."""

    rotated = model.vertices.dot(rotation_matrix(orientation).T)
    x, y = center
    visible: List[ProjectedFace] = []
    for face in model.faces:
        indices = [int(i) for i in face]
        if len(indices) < 3:
            continue
        normal = _face_normal(rotated, indices)
        norm_len = float(np.linalg.norm(normal))
        if norm_len == 0.0:
            continue
        normal_unit = normal / norm_len
        if float(np.dot(normal_unit, VIEW_DIRECTION)) <= 0.0:
            continue
        diffuse = max(0.0, float(np.dot(normal_unit, LIGHT_DIRECTION)))
        points = [(x + float(rotated[i, 0]) * scale, y - float(rotated[i, 1]) * scale) for i in indices]
        visible.append(
            ProjectedFace(
                depth=float(np.mean(rotated[indices, 2])),
                points=points,
                shade=0.30 + 0.70 * diffuse,
            )
        )
    visible.sort(key=lambda entry: entry.depth)
    return visible


__all__ = ["DICE_MODELS", "DiceModel", "ProjectedFace", "model_for", "project_model", "rotation_matrix"]
