import numpy as np

from bem_assembly.elements import LagrangeElement
from bem_assembly.grid import CellGeometry, MixedGrid
from bem_assembly.kernels import BoundaryKernel, GreenFunction
from bem_assembly.singular import CellPairRule


def weighted_curls(element: LagrangeElement,
                   ref_points: np.ndarray,
                   geom: CellGeometry,
                   weights: np.ndarray) -> np.ndarray:
    """
    Surface curls of the basis functions times the quadrature measure.

    curl_Γ φ = n × ∇_Γ φ = (∂_s φ J_t - ∂_t φ J_s) / |J_s × J_t|, so the
    surface Jacobian of the measure cancels.

    Args:
        element (LagrangeElement): Element of the cells.
        ref_points (np.ndarray): Reference points, shape (Q, 2).
        geom (CellGeometry): Geometry of the cells at ref_points.
        weights (np.ndarray): Reference weights, shape (Q,) or (B, Q).

    Returns:
        np.ndarray: Array of shape (B, Q, n, 3).
    """
    dN = element.tabulate_derivatives(ref_points)
    J = geom.jacobians
    curl = (dN[None, :, :, 0, None] * J[:, :, None, :, 1] -
            dN[None, :, :, 1, None] * J[:, :, None, :, 0])
    return curl * np.broadcast_to(weights, geom.jdet.shape)[..., None, None]


class ElementIntegrator:
    """
    Batched Galerkin integrator for operators with a scalar kernel.

    Computes, for batches of (test cell, trial cell) pairs, the local blocks

        B_ij = ∬ K(x, y) φ_i(x) ψ_j(y) dΓ_y dΓ_x

    where φ are the test and ψ the trial basis functions.
    """

    def __init__(self,
                 kernel: BoundaryKernel,
                 needs_trial_normal: bool | None = None,
                 needs_test_normal: bool | None = None,
                 dtype: np.dtype | None = None):
        """
        Args:
            kernel (BoundaryKernel): Pointwise kernel.
            needs_trial_normal (bool | None): Pass trial normals to the
                kernel. Defaults to the kernel's own requirement.
            needs_test_normal (bool | None): Pass test normals to the kernel.
                Defaults to the kernel's own requirement.
            dtype (np.dtype | None): Dtype of the blocks. Defaults to the
                kernel dtype.
        """
        self.kernel = kernel
        self.needs_trial_normal = (kernel.needs_trial_normal
                                   if needs_trial_normal is None
                                   else needs_trial_normal)
        self.needs_test_normal = (kernel.needs_test_normal
                                  if needs_test_normal is None
                                  else needs_test_normal)
        self._dtype = np.dtype(kernel.dtype if dtype is None else dtype)

    def _kernel(self, gx: CellGeometry, gy: CellGeometry, tensor: bool):
        if tensor:
            x, y = gx.points[:, :, None, :], gy.points[:, None, :, :]
            n_x = gx.normals[:, :, None, :] if self.needs_test_normal \
                else None
            n_y = gy.normals[:, None, :, :] if self.needs_trial_normal \
                else None
        else:
            x, y = gx.points, gy.points
            n_x = gx.normals if self.needs_test_normal else None
            n_y = gy.normals if self.needs_trial_normal else None
        return self.kernel(x, y, n_x, n_y)

    def regular_blocks(self,
                       grid: MixedGrid,
                       test_cells: np.ndarray,
                       trial_cells: np.ndarray,
                       test_element: LagrangeElement,
                       trial_element: LagrangeElement,
                       test_rule: tuple[np.ndarray, np.ndarray],
                       trial_rule: tuple[np.ndarray, np.ndarray],
                       ) -> np.ndarray:
        """
        Local blocks of disjoint pairs with a tensor rule.

        Args:
            grid (MixedGrid): Grid of both cells.
            test_cells (np.ndarray): Test cells of one type, shape (B,).
            trial_cells (np.ndarray): Trial cells of one type, shape (B,).
            test_element (LagrangeElement): Element on the test cells.
            trial_element (LagrangeElement): Element on the trial cells.
            test_rule (tuple[np.ndarray, np.ndarray]): Points (Qx, 2) and
                weights (Qx,) on the test cell.
            trial_rule (tuple[np.ndarray, np.ndarray]): Points (Qy, 2) and
                weights (Qy,) on the trial cell.

        Returns:
            np.ndarray: Blocks of shape (B, n_test, n_trial).
        """
        xi_x, w_x = test_rule
        xi_y, w_y = trial_rule
        gx = grid.geometry(test_cells, xi_x)
        gy = grid.geometry(trial_cells, xi_y)

        K = self._kernel(gx, gy, tensor=True)

        Nx = test_element.tabulate(xi_x)
        Ny = trial_element.tabulate(xi_y)
        L = Nx[None, :, :] * (w_x[None, :] * gx.jdet)[:, :, None]
        R = Ny[None, :, :] * (w_y[None, :] * gy.jdet)[:, :, None]

        blocks = np.einsum('bqi,bqk,bkj->bij', L, K, R, optimize=True)
        return blocks.astype(self._dtype, copy=False)

    def singular_blocks(self,
                        grid: MixedGrid,
                        test_cells: np.ndarray,
                        trial_cells: np.ndarray,
                        test_element: LagrangeElement,
                        trial_element: LagrangeElement,
                        pair_rule: CellPairRule,
                        ) -> np.ndarray:
        """
        Local blocks of touching or identical pairs sharing one paired rule.

        Returns:
            np.ndarray: Blocks of shape (B, n_test, n_trial).
        """
        gx = grid.geometry(test_cells, pair_rule.test_points)
        gy = grid.geometry(trial_cells, pair_rule.trial_points)

        K = self._kernel(gx, gy, tensor=False)
        W = pair_rule.weights[None, :] * gx.jdet * gy.jdet

        Nx = test_element.tabulate(pair_rule.test_points)
        Ny = trial_element.tabulate(pair_rule.trial_points)

        blocks = np.einsum('qi,bq,qj->bij', Nx, K * W, Ny, optimize=True)
        return blocks.astype(self._dtype, copy=False)


class HypersingularIntegrator:
    """
    Batched Galerkin integrator for the hypersingular operator in its
    integrated-by-parts form:

        W_ij = ∬ G(x, y) [curl_Γ φ_i(x) · curl_Γ ψ_j(y)
                          - k² (n_x · n_y) φ_i(x) ψ_j(y)] dΓ_y dΓ_x

    with k = 0 for Laplace.
    """

    def __init__(self,
                 green: GreenFunction,
                 dtype: np.dtype | None = None):
        self.green = green
        self.k = green.wavenumber
        self._dtype = np.dtype(green.dtype if dtype is None else dtype)

    def regular_blocks(self,
                       grid: MixedGrid,
                       test_cells: np.ndarray,
                       trial_cells: np.ndarray,
                       test_element: LagrangeElement,
                       trial_element: LagrangeElement,
                       test_rule: tuple[np.ndarray, np.ndarray],
                       trial_rule: tuple[np.ndarray, np.ndarray],
                       ) -> np.ndarray:
        xi_x, w_x = test_rule
        xi_y, w_y = trial_rule
        gx = grid.geometry(test_cells, xi_x)
        gy = grid.geometry(trial_cells, xi_y)

        Gxy = self.green.evaluate(gx.points[:, :, None, :],
                                  gy.points[:, None, :, :])[0]

        Cx = weighted_curls(test_element, xi_x, gx, w_x)
        Cy = weighted_curls(trial_element, xi_y, gy, w_y)
        blocks = np.einsum('bqid,bqk,bkjd->bij', Cx, Gxy, Cy, optimize=True)

        if self.k != 0.0:
            Nx = test_element.tabulate(xi_x)
            Ny = trial_element.tabulate(xi_y)
            L = Nx[None, :, :] * (w_x[None, :] * gx.jdet)[:, :, None]
            R = Ny[None, :, :] * (w_y[None, :] * gy.jdet)[:, :, None]
            nxny = np.einsum('bqd,bkd->bqk', gx.normals, gy.normals)
            blocks = blocks - self.k ** 2 * np.einsum(
                'bqi,bqk,bkj->bij', L, Gxy * nxny, R, optimize=True)

        return blocks.astype(self._dtype, copy=False)

    def singular_blocks(self,
                        grid: MixedGrid,
                        test_cells: np.ndarray,
                        trial_cells: np.ndarray,
                        test_element: LagrangeElement,
                        trial_element: LagrangeElement,
                        pair_rule: CellPairRule,
                        ) -> np.ndarray:
        xi_x, xi_y = pair_rule.test_points, pair_rule.trial_points
        gx = grid.geometry(test_cells, xi_x)
        gy = grid.geometry(trial_cells, xi_y)

        Gxy = self.green.evaluate(gx.points, gy.points)[0]
        GW = Gxy * pair_rule.weights[None, :]

        Cx = weighted_curls(test_element, xi_x, gx, 1.0)
        Cy = weighted_curls(trial_element, xi_y, gy, 1.0)
        blocks = np.einsum('bqid,bq,bqjd->bij', Cx, GW, Cy, optimize=True)

        if self.k != 0.0:
            Nx = test_element.tabulate(xi_x)
            Ny = trial_element.tabulate(xi_y)
            nxny = np.sum(gx.normals * gy.normals, axis=-1)
            W = GW * gx.jdet * gy.jdet * nxny
            blocks = blocks - self.k ** 2 * np.einsum(
                'qi,bq,qj->bij', Nx, W, Ny, optimize=True)

        return blocks.astype(self._dtype, copy=False)
