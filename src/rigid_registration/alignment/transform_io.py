"""
Transform persistence

Save and load rigid transforms as 4x4 homogeneous matrices in plain text.
"""

from pathlib import Path
from typing import Union

import numpy as np

from ..geometry.rigid_transform import RigidTransform
from ..utils.logging import setup_logger

logger = setup_logger(__name__)


def save_transform(transform: RigidTransform, output_file: Union[str, Path]) -> None:
    """Save a transform as a 4x4 matrix text file.

    Args:
        transform: Transform to save
        output_file: Path to output file
    """
    np.savetxt(output_file, transform.as_matrix(), fmt='%.18e', header='4x4 transformation matrix')
    logger.info(f"Saved transformation matrix to {output_file}")


def load_transform(input_file: Union[str, Path]) -> RigidTransform:
    """Load a transform from a 4x4 matrix text file.

    Args:
        input_file: Path to input file

    Returns:
        RigidTransform

    Raises:
        ValueError: If the file does not hold a 4x4 rigid transformation
    """
    matrix = np.loadtxt(input_file)
    if matrix.shape != (4, 4):
        raise ValueError(f"Expected 4x4 matrix, got shape {matrix.shape}")
    if not np.allclose(matrix[3], [0.0, 0.0, 0.0, 1.0]):
        raise ValueError(f"Last row of a rigid transformation must be [0, 0, 0, 1], got {matrix[3]}")
    logger.info(f"Loaded transformation matrix from {input_file}")
    return RigidTransform.from_matrix(matrix)
