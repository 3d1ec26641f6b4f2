import numpy as np

from bem_assembly.exceptions import (ConfigurationError,
                                     NumericalDegeneracyError)


def r_vec(x: np.ndarray,
          y: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Compute the vector from points y to points x.

    r_vec = x - y
    r_norm = ||r_vec||
    r_hat = r_vec / r_norm

    Args:
        x (np.ndarray): Array of shape (..., 3) representing points x.
        y (np.ndarray): Array of shape (..., 3) representing points y. Must
            broadcast against x.

    Returns:
        r_vec (np.ndarray): Array of shape (..., 3) representing the vector
            from y to x.
        r_norm (np.ndarray): Array of shape (...) representing the norm of
            r_vec.
        r_hat (np.ndarray): Array of shape (..., 3) representing the unit
            vector in the direction of r_vec.

    Raises:
        NumericalDegeneracyError: If any pair of points coincides or the
            distance is not finite.
    """
    r_vec_ = x - y
    r_norm = np.linalg.norm(r_vec_, axis=-1)
    if not np.all(r_norm > 0.0) or not np.all(np.isfinite(r_norm)):
        raise NumericalDegeneracyError(
            "Kernel evaluated at a coincident or non-finite point pair; "
            "the cell pair should have used a singular rule.")
    r_hat = r_vec_ / r_norm[..., np.newaxis]
    return r_vec_, r_norm, r_hat

def laplace_G(r_norm: np.ndarray) -> np.ndarray:
    """
    Compute the Green's function for the Laplace equation in 3D.

    G(r) = 1/(4π r)

    Args:
        r_norm (np.ndarray): Array of shape (...) representing the distance
            between source and field points.

    Returns:
        G (np.ndarray): Array of shape (...) representing the Green's function.
    """
    return 1.0 / (4 * np.pi * r_norm)

def laplace_dG_dr(r_norm: np.ndarray,
                  G: np.ndarray) -> np.ndarray:
    """
    Derivative of the Laplace Green's function with respect to r.

    For G(r) = 1/(4π r):
        dG/dr = -G / r
    """
    return -G / r_norm

def helmholtz_G(r_norm: np.ndarray,
                k: float) -> np.ndarray:
    """
    Compute the Green's function for the Helmholtz equation in 3D.

    G(r) = e^{ikr}/(4π r)

    Args:
        r_norm (np.ndarray): Array of shape (...) representing the distance
            between source and field points.
        k (float): Wavenumber.

    Returns:
        G (np.ndarray): Array of shape (...) representing the Green's function.
    """
    return np.exp(1j * k * r_norm) / (4 * np.pi * r_norm)

def helmholtz_dG_dr(r_norm: np.ndarray,
                    G: np.ndarray,
                    k: float) -> np.ndarray:
    """
    Compute the derivative of the Green's function with respect to r.

    For G(r) = e^{ikr}/(4π r):
        dG/dr = (ik - 1/r) * G

    Args:
        r_norm (np.ndarray): Array of shape (...) representing the distance
            between source and field points.
        G (np.ndarray): Array of shape (...) representing the Green's function.
        k (float): Wavenumber.

    Returns:
        dG_dr (np.ndarray): Array of shape (...) representing the derivative
            of the Green's function with respect to r.
    """
    return G * (1j * k - 1 / r_norm)

def dG_dn_y(r_hat: np.ndarray,
            dG_dr: np.ndarray,
            n_y: np.ndarray) -> np.ndarray:
    """
    Compute the normal derivative of the Green's function with respect to
    the source point y.

    ∂G/∂n_y = -dG/dr (r_hat · n_y)

    Args:
        r_hat (np.ndarray): Array of shape (..., 3) representing the unit
            vector in the direction from y to x.
        dG_dr (np.ndarray): Array of shape (...) representing the derivative
            of the Green's function with respect to r.
        n_y (np.ndarray): Array broadcastable to (..., 3) representing the
            normal vector at point y.

    Returns:
        dG_dn_y (np.ndarray): Array of shape (...) representing the normal
            derivative of the Green's function with respect to y.
    """
    return -dG_dr * np.sum(r_hat * n_y, axis=-1)

def dG_dn_x(r_hat: np.ndarray,
            dG_dr: np.ndarray,
            n_x: np.ndarray) -> np.ndarray:
    """
    Compute the normal derivative of the Green's function with respect to
    the field point x.

    ∂G/∂n_x = dG/dr (r_hat · n_x)

    Args:
        r_hat (np.ndarray): Array of shape (..., 3) representing the unit
            vector in the direction from y to x.
        dG_dr (np.ndarray): Array of shape (...) representing the derivative
            of the Green's function with respect to r.
        n_x (np.ndarray): Array broadcastable to (..., 3) representing the
            normal vector at point x.

    Returns:
        dG_dn_x (np.ndarray): Array of shape (...) representing the normal
            derivative of the Green's function with respect to x.
    """
    return dG_dr * np.sum(r_hat * n_x, axis=-1)


class GreenFunction:
    """
    Free-space Green's function of a PDE in 3D.

    Subclasses provide the radial profile G(r) and dG/dr; evaluation at point
    pairs, including the gradient with respect to the target point, is shared.
    """
    dtype = np.dtype(np.float64)
    wavenumber = 0.0

    def value(self, r_norm: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def radial_derivative(self,
                          r_norm: np.ndarray,
                          G_vals: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    @property
    def is_complex(self) -> bool:
        return np.issubdtype(self.dtype, np.complexfloating)

    def evaluate(self,
                 x: np.ndarray,
                 y: np.ndarray,
                 gradient: bool = False,
                 ) -> tuple[np.ndarray, np.ndarray | None]:
        """
        Evaluate G(x, y) and optionally its gradient with respect to x.

        Args:
            x (np.ndarray): Target points, shape (..., 3).
            y (np.ndarray): Source points, broadcastable against x.
            gradient (bool): Also return ∇_x G.

        Returns:
            tuple[np.ndarray, np.ndarray | None]: Values of shape (...) and,
            if requested, gradients of shape (..., 3).
        """
        _, r_norm, r_hat = r_vec(x, y)
        G_vals = self.value(r_norm)
        if not gradient:
            return G_vals, None
        dGr = self.radial_derivative(r_norm, G_vals)
        return G_vals, dGr[..., None] * r_hat


class LaplaceGreen(GreenFunction):
    """G(r) = 1/(4π r)."""

    def value(self, r_norm):
        return laplace_G(r_norm)

    def radial_derivative(self, r_norm, G_vals):
        return laplace_dG_dr(r_norm, G_vals)

    def __repr__(self) -> str:
        return "LaplaceGreen()"


class HelmholtzGreen(GreenFunction):
    """G(r) = e^{ikr}/(4π r) for a real wavenumber k."""
    dtype = np.dtype(np.complex128)

    def __init__(self, k: float):
        if k is None or not np.isfinite(k):
            raise ConfigurationError("Helmholtz kernels need a finite "
                                     "wavenumber.")
        self.wavenumber = float(k)

    def value(self, r_norm):
        return helmholtz_G(r_norm, self.wavenumber)

    def radial_derivative(self, r_norm, G_vals):
        return helmholtz_dG_dr(r_norm, G_vals, self.wavenumber)

    def __repr__(self) -> str:
        return f"HelmholtzGreen(k={self.wavenumber})"


class BoundaryKernel:
    """
    Pointwise kernel of a boundary operator built from a Green's function.

    Called as ``kernel(x, y, n_x, n_y)`` with x on the test cell and y on the
    trial cell; all arguments must broadcast against each other.
    """
    needs_test_normal = False
    needs_trial_normal = False

    def __init__(self, green: GreenFunction):
        self.green = green

    @property
    def dtype(self) -> np.dtype:
        return self.green.dtype

    @property
    def is_complex(self) -> bool:
        return self.green.is_complex

    def __call__(self,
                 x: np.ndarray,
                 y: np.ndarray,
                 n_x: np.ndarray | None = None,
                 n_y: np.ndarray | None = None) -> np.ndarray:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.green!r})"


class SingleLayerKernel(BoundaryKernel):
    """G(x, y)."""

    def __call__(self, x, y, n_x=None, n_y=None):
        return self.green.value(r_vec(x, y)[1])


class DoubleLayerKernel(BoundaryKernel):
    """∂G/∂n_y, the gradient with respect to the source point."""
    needs_trial_normal = True

    def __call__(self, x, y, n_x=None, n_y=None):
        if n_y is None:
            raise ConfigurationError("Double layer kernel needs trial "
                                     "normals.")
        r_norm, r_hat = r_vec(x, y)[1:]
        G_vals = self.green.value(r_norm)
        return dG_dn_y(r_hat, self.green.radial_derivative(r_norm, G_vals),
                       n_y)


class AdjointDoubleLayerKernel(BoundaryKernel):
    """∂G/∂n_x, the gradient with respect to the target point."""
    needs_test_normal = True

    def __call__(self, x, y, n_x=None, n_y=None):
        if n_x is None:
            raise ConfigurationError("Adjoint double layer kernel needs test "
                                     "normals.")
        r_norm, r_hat = r_vec(x, y)[1:]
        G_vals = self.green.value(r_norm)
        return dG_dn_x(r_hat, self.green.radial_derivative(r_norm, G_vals),
                       n_x)
