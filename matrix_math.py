"""
Small dense matrix helpers (2x2 and 3x3) for color-statistics alignment:
products, determinants, symmetric eigen decomposition, and axis-angle
rotation blending. Matrices are numpy arrays; vectors are length-3 arrays.
"""

import math
from typing import Tuple

import numpy as np

__all__ = [
    'EPSILON',
    'identity_matrix3', 'transpose_matrix3', 'multiply_matrix3',
    'multiply_matrix3_vector', 'determinant_matrix3', 'is_identity_matrix3',
    'normalize_vector', 'regularize_matrix3', 'build_axis_angle_rotation',
    'matrix_to_axis_angle', 'blend_rotation_matrix', 'jacobi_eigen_decomposition',
    'ensure_right_handed_basis',
    'identity_matrix2', 'transpose_matrix2', 'multiply_matrix2',
    'regularize_matrix2', 'eigen_decomposition_2x2', 'ensure_right_handed_basis2',
]

EPSILON = 1e-10
IDENTITY_TOLERANCE = 1e-5
JACOBI_SWEEPS = 15


# -------------------- 3x3 basics --------------------

def identity_matrix3() -> np.ndarray:
    return np.eye(3, dtype=np.float64)


def transpose_matrix3(m: np.ndarray) -> np.ndarray:
    return np.array(m, dtype=np.float64).T.copy()


def multiply_matrix3(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.asarray(a, dtype=np.float64) @ np.asarray(b, dtype=np.float64)


def multiply_matrix3_vector(m: np.ndarray, v) -> np.ndarray:
    return np.asarray(m, dtype=np.float64) @ np.asarray(v, dtype=np.float64)


def determinant_matrix3(m: np.ndarray) -> float:
    m = np.asarray(m, dtype=np.float64)
    return float(
        m[0, 0] * (m[1, 1] * m[2, 2] - m[1, 2] * m[2, 1])
        - m[0, 1] * (m[1, 0] * m[2, 2] - m[1, 2] * m[2, 0])
        + m[0, 2] * (m[1, 0] * m[2, 1] - m[1, 1] * m[2, 0])
    )


def is_identity_matrix3(m: np.ndarray, tolerance: float = IDENTITY_TOLERANCE) -> bool:
    return bool(np.all(np.abs(np.asarray(m, dtype=np.float64) - np.eye(3)) <= tolerance))


def normalize_vector(v) -> np.ndarray:
    v = np.asarray(v, dtype=np.float64)
    length = float(np.linalg.norm(v))
    if length < EPSILON:
        return np.zeros_like(v)
    return v / length


def regularize_matrix3(m: np.ndarray, epsilon: float) -> np.ndarray:
    """Add ``epsilon`` to the diagonal (ridge) so near-singular covariances stay usable."""
    return np.asarray(m, dtype=np.float64) + np.eye(3) * epsilon


# -------------------- Rotations --------------------

def build_axis_angle_rotation(axis, angle: float) -> np.ndarray:
    """Rodrigues rotation matrix for ``angle`` radians about ``axis``."""
    k = normalize_vector(axis)
    if not np.any(k) or abs(angle) < EPSILON:
        return identity_matrix3()
    kx, ky, kz = k
    cross = np.array([
        [0.0, -kz, ky],
        [kz, 0.0, -kx],
        [-ky, kx, 0.0],
    ])
    return np.eye(3) + math.sin(angle) * cross + (1.0 - math.cos(angle)) * (cross @ cross)


def matrix_to_axis_angle(m: np.ndarray) -> Tuple[np.ndarray, float]:
    """Decompose a rotation matrix into (unit axis, angle in radians)."""
    m = np.asarray(m, dtype=np.float64)
    cos_angle = (np.trace(m) - 1.0) / 2.0
    angle = math.acos(min(1.0, max(-1.0, cos_angle)))
    if angle < EPSILON:
        return np.array([0.0, 0.0, 1.0]), 0.0
    denom = 2.0 * math.sin(angle)
    if abs(denom) < EPSILON:
        # half-turn: the axis is the dominant column of (M + I) / 2
        sym = (m + np.eye(3)) / 2.0
        column = int(np.argmax(np.diag(sym)))
        axis = normalize_vector(sym[:, column])
        if not np.any(axis):
            axis = np.array([1.0, 0.0, 0.0])
        return axis, angle
    axis = np.array([
        m[2, 1] - m[1, 2],
        m[0, 2] - m[2, 0],
        m[1, 0] - m[0, 1],
    ]) / denom
    return normalize_vector(axis), angle


def blend_rotation_matrix(m: np.ndarray, strength: float) -> np.ndarray:
    """
    Scale the rotation angle of ``m`` by ``strength`` (clamped to [0, 1]),
    keeping its axis. Near-identity input or ~zero strength give identity.
    """
    if not math.isfinite(strength):
        return identity_matrix3()
    strength = min(1.0, max(0.0, strength))
    if strength <= EPSILON or is_identity_matrix3(m):
        return identity_matrix3()
    axis, angle = matrix_to_axis_angle(m)
    if angle < EPSILON:
        return identity_matrix3()
    return build_axis_angle_rotation(axis, angle * strength)


# -------------------- Eigen decomposition --------------------

def jacobi_eigen_decomposition(matrix: np.ndarray,
                               max_sweeps: int = JACOBI_SWEEPS) -> Tuple[np.ndarray, np.ndarray]:
    """
    Eigen decomposition of a symmetric 3x3 matrix by Jacobi rotations.

    Each sweep zeroes the largest off-diagonal element. Runs at most
    ``max_sweeps`` sweeps and returns the best effort either way.

    Returns:
        (eigenvalues, eigenvectors) with eigenvalues sorted descending and the
        matching eigenvectors as the columns of a 3x3 array.
    """
    a = np.array(matrix, dtype=np.float64)
    v = np.eye(3)
    n = 3

    for _ in range(max_sweeps):
        p, q = 0, 1
        largest = abs(a[0, 1])
        for i in range(n):
            for j in range(i + 1, n):
                if abs(a[i, j]) > largest:
                    largest = abs(a[i, j])
                    p, q = i, j
        if largest < EPSILON:
            break

        app, aqq, apq = a[p, p], a[q, q], a[p, q]
        theta = 0.5 * math.atan2(2.0 * apq, aqq - app)
        c, s = math.cos(theta), math.sin(theta)

        a[p, p] = c * c * app - 2.0 * s * c * apq + s * s * aqq
        a[q, q] = s * s * app + 2.0 * s * c * apq + c * c * aqq
        a[p, q] = a[q, p] = 0.0
        for j in range(n):
            if j in (p, q):
                continue
            apj, aqj = a[p, j], a[q, j]
            a[p, j] = a[j, p] = c * apj - s * aqj
            a[q, j] = a[j, q] = s * apj + c * aqj

        col_p, col_q = v[:, p].copy(), v[:, q].copy()
        v[:, p] = c * col_p - s * col_q
        v[:, q] = s * col_p + c * col_q

    values = np.diag(a).copy()
    order = np.argsort(-values, kind='stable')
    return values[order], v[:, order]


def ensure_right_handed_basis(basis: np.ndarray) -> np.ndarray:
    """Flip the last column if the basis has a negative determinant."""
    basis = np.array(basis, dtype=np.float64)
    if determinant_matrix3(basis) < 0.0:
        basis[:, 2] = -basis[:, 2]
    return basis


# -------------------- 2x2 --------------------

def identity_matrix2() -> np.ndarray:
    return np.eye(2, dtype=np.float64)


def transpose_matrix2(m: np.ndarray) -> np.ndarray:
    return np.array(m, dtype=np.float64).T.copy()


def multiply_matrix2(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.asarray(a, dtype=np.float64) @ np.asarray(b, dtype=np.float64)


def regularize_matrix2(m: np.ndarray, epsilon: float) -> np.ndarray:
    return np.asarray(m, dtype=np.float64) + np.eye(2) * epsilon


def _normalize2(x: float, y: float) -> np.ndarray:
    length = math.hypot(x, y)
    if length < EPSILON:
        return np.array([1.0, 0.0])
    return np.array([x / length, y / length])


def eigen_decomposition_2x2(m: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Closed-form eigen decomposition of a symmetric 2x2 matrix.
    Returns (eigenvalues descending, eigenvectors as columns).
    """
    m = np.asarray(m, dtype=np.float64)
    a, b, d = m[0, 0], m[0, 1], m[1, 1]
    half_trace = (a + d) / 2.0
    disc = math.sqrt(max(0.0, ((a - d) / 2.0) ** 2 + b * b))
    l1, l2 = half_trace + disc, half_trace - disc

    if abs(b) <= 1e-8:
        if a >= d:
            return np.array([a, d]), np.eye(2)
        return np.array([d, a]), np.array([[0.0, 1.0], [1.0, 0.0]])

    v1 = _normalize2(b, l1 - a)
    v2 = _normalize2(b, l2 - a)
    if abs(float(v1 @ v2)) > 0.999:
        v2 = np.array([-v1[1], v1[0]])
    return np.array([l1, l2]), np.column_stack([v1, v2])


def ensure_right_handed_basis2(basis: np.ndarray) -> np.ndarray:
    basis = np.array(basis, dtype=np.float64)
    if basis[0, 0] * basis[1, 1] - basis[0, 1] * basis[1, 0] < 0.0:
        basis[:, 1] = -basis[:, 1]
    return basis
