import math

import numpy as np

from matrix_math import (
    blend_rotation_matrix, build_axis_angle_rotation, determinant_matrix3,
    eigen_decomposition_2x2, ensure_right_handed_basis, identity_matrix3,
    is_identity_matrix3, jacobi_eigen_decomposition, matrix_to_axis_angle,
)


def test_jacobi_matches_numpy():
    matrix = np.array([
        [4.0, 1.0, 0.5],
        [1.0, 3.0, 0.2],
        [0.5, 0.2, 2.0],
    ])
    values, vectors = jacobi_eigen_decomposition(matrix)
    expected = np.sort(np.linalg.eigvalsh(matrix))[::-1]
    assert np.allclose(values, expected, atol=1e-8)
    assert np.all(np.diff(values) <= 0)
    for i in range(3):
        assert np.allclose(matrix @ vectors[:, i], values[i] * vectors[:, i], atol=1e-6)
    assert np.allclose(vectors.T @ vectors, np.eye(3), atol=1e-8)


def test_jacobi_diagonal_input_is_sorted():
    values, vectors = jacobi_eigen_decomposition(np.diag([1.0, 5.0, 3.0]))
    assert np.allclose(values, [5.0, 3.0, 1.0])
    assert np.allclose(np.abs(vectors[:, 0]), [0.0, 1.0, 0.0])


def test_right_handed_basis():
    basis = np.diag([1.0, 1.0, -1.0])
    fixed = ensure_right_handed_basis(basis)
    assert determinant_matrix3(fixed) > 0
    assert np.allclose(fixed[:, :2], basis[:, :2])


def test_axis_angle_round_trip():
    axis = np.array([1.0, 2.0, 3.0]) / math.sqrt(14.0)
    rotation = build_axis_angle_rotation(axis, 0.8)
    assert np.allclose(rotation @ rotation.T, np.eye(3), atol=1e-12)
    recovered_axis, angle = matrix_to_axis_angle(rotation)
    assert math.isclose(angle, 0.8, abs_tol=1e-9)
    assert np.allclose(recovered_axis, axis, atol=1e-9)


def test_axis_angle_half_turn():
    rotation = build_axis_angle_rotation([0.0, 0.0, 1.0], math.pi)
    axis, angle = matrix_to_axis_angle(rotation)
    assert math.isclose(angle, math.pi, abs_tol=1e-9)
    assert np.allclose(np.abs(axis), [0.0, 0.0, 1.0], atol=1e-6)


def test_blend_rotation_scales_angle():
    rotation = build_axis_angle_rotation([0.0, 1.0, 0.0], 1.0)
    half = blend_rotation_matrix(rotation, 0.5)
    assert np.allclose(half, build_axis_angle_rotation([0.0, 1.0, 0.0], 0.5), atol=1e-9)
    assert is_identity_matrix3(blend_rotation_matrix(rotation, 0.0))
    assert np.allclose(blend_rotation_matrix(rotation, 1.0), rotation, atol=1e-9)
    assert is_identity_matrix3(blend_rotation_matrix(identity_matrix3(), 0.7))


def test_eigen_2x2():
    values, vectors = eigen_decomposition_2x2(np.array([[2.0, 1.0], [1.0, 2.0]]))
    assert np.allclose(values, [3.0, 1.0])
    assert np.allclose(np.abs(vectors[:, 0]), [math.sqrt(0.5), math.sqrt(0.5)])

    values, vectors = eigen_decomposition_2x2(np.array([[1.0, 0.0], [0.0, 4.0]]))
    assert np.allclose(values, [4.0, 1.0])
    assert np.allclose(np.abs(vectors[:, 0]), [0.0, 1.0])
