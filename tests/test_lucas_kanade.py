"""
Tests for the Lucas-Kanade sparse optical flow solver.
"""

import pytest
import numpy as np


def random_frame(shape=(32, 32), seed=0):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=shape, dtype=np.uint8)


def gaussian_blob(shape, center, sigma=4.0, amplitude=220.0, base=20.0):
    """8-bit frame holding a Gaussian blob centered at a sub-pixel position."""
    r, c = np.mgrid[0:shape[0], 0:shape[1]].astype(np.float64)
    d2 = (r - center[0]) ** 2 + (c - center[1]) ** 2
    return np.round(base + amplitude * np.exp(-d2 / (2.0 * sigma ** 2))).astype(np.uint8)


def loop_solve(frame1, frame2, point, window, flow, iterations):
    """
    Pixel-by-pixel Lucas-Kanade loop with uniform weights.

    Warped positions are skipped below 0 and above the clipped window end.
    Returns (flow, response) after the given number of iterations.
    """
    import math
    import cv2
    from lkflow.imgproc import GradientDirection, sobel

    f1 = frame1.astype(np.float32)
    f2 = frame2.astype(np.float32)
    fxs = cv2.filter2D(f1, -1, sobel(GradientDirection.DIR_X))
    fys = cv2.filter2D(f1, -1, sobel(GradientDirection.DIR_Y))
    height, width = f1.shape

    rb = max(int(point[0] - window[0] / 2.0), 1)
    re = min(int(point[0] + window[0] / 2.0), height - 1)
    cb = max(int(point[1] - window[1] / 2.0), 1)
    ce = min(int(point[1] + window[1] / 2.0), width - 1)

    def sample(y, x):
        r0, c0 = int(math.floor(y)), int(math.floor(x))
        r1, c1 = min(r0 + 1, height - 1), min(c0 + 1, width - 1)
        ty, tx = y - r0, x - c0
        top = (1 - tx) * f2[r0, c0] + tx * f2[r0, c1]
        bottom = (1 - tx) * f2[r1, c0] + tx * f2[r1, c1]
        return (1 - ty) * top + ty * bottom

    flow = np.array(flow, dtype=np.float32)
    response = float("nan")
    for _ in range(iterations):
        a1 = a2 = a3 = b1 = b2 = 0.0
        for i in range(rb, re):
            for j in range(cb, ce):
                ny = i + float(flow[0])
                nx = j + float(flow[1])
                if nx < 0.0 or nx > ce or ny < 0.0 or ny > re:
                    continue
                fx = float(fxs[i, j])
                fy = float(fys[i, j])
                ft = sample(ny, nx) - float(f1[i, j])
                a1 += fx * fx
                a2 += fx * fy
                a3 += fy * fy
                b1 += fx * ft
                b2 += fy * ft
        response = (a1 + a3) - math.sqrt((a1 - a3) ** 2 + a2 ** 2)
        d = a1 * a3 - a2 * a2
        if d:
            flow[1] += (a2 * b2 - a3 * b1) / d
            flow[0] += (a2 * b1 - a1 * b2) / d
    return flow, response


class TestWarpBounds:
    """Tests for skipping warped positions outside the window."""

    @pytest.mark.parametrize("point,window,initial", [
        # pushes rows past row_end=20 and cols past col_end=20, inside the 40x40 frame
        ((15.5, 15.5), (9, 9), (3.5, 2.5)),
        # pushes rows and cols below 0; ny in [0, row_begin) stays valid
        ((4.5, 4.5), (7, 7), (-3.25, -2.5)),
    ])
    def test_matches_pixel_loop(self, point, window, initial):
        """Test the solver skips the same pixels as a pixel-by-pixel loop."""
        from lkflow.tracking import LucasKanadeFlow

        frame1 = random_frame((40, 40), seed=21)
        frame2 = random_frame((40, 40), seed=22)
        flow = np.array([initial], dtype=np.float32)

        lk = LucasKanadeFlow(iteration_count=1)
        lk.evaluate(frame1, frame2, [point], [window], flow, use_previous=True)

        expected_flow, expected_response = loop_solve(
            frame1, frame2, point, window, initial, 1
        )
        np.testing.assert_allclose(flow[0], expected_flow, rtol=1e-4, atol=1e-4)
        assert lk.corner_response[0] == pytest.approx(expected_response, rel=1e-4)

    def test_window_end_differs_from_frame_bounds(self):
        """Test that a frame-bounded check would give a different response."""
        from lkflow.tracking import LucasKanadeFlow

        frame1 = random_frame((40, 40), seed=23)
        frame2 = random_frame((40, 40), seed=24)
        point, window = (15.5, 15.5), (9, 9)

        shifted = LucasKanadeFlow(iteration_count=1)
        shifted.evaluate(
            frame1, frame2, [point], [window],
            np.array([[3.5, 2.5]], dtype=np.float32), use_previous=True,
        )
        inside = LucasKanadeFlow(iteration_count=1)
        inside.evaluate(frame1, frame2, [point], [window])

        # Only 6x7 of the 9x9 pixels stay inside the window end after the shift
        assert shifted.corner_response[0] < inside.corner_response[0]


class TestWeightingApplied:
    """Tests that the configured weighting reaches the solver."""

    def test_gaussian_differs_from_uniform(self):
        """Test Gaussian weighting changes flow and response on moving frames."""
        from lkflow.tracking import LucasKanadeFlow, gaussian_weight

        frame1 = gaussian_blob((33, 33), (16.0, 16.0))
        frame2 = gaussian_blob((33, 33), (16.4, 15.7))
        points, windows = [[16.5, 16.5]], [[17, 17]]

        uniform = LucasKanadeFlow(iteration_count=2)
        flow_u = uniform.evaluate(frame1, frame2, points, windows)
        gaussian = LucasKanadeFlow(iteration_count=2, sigma=2.0, weighting=gaussian_weight)
        flow_g = gaussian.evaluate(frame1, frame2, points, windows)

        assert not np.allclose(flow_u, flow_g, atol=1e-6)
        assert gaussian.corner_response[0] != pytest.approx(uniform.corner_response[0])

    def test_custom_constant_weight(self):
        """Test a constant weight of 2 doubles the response, not the flow."""
        from lkflow.tracking import LucasKanadeFlow

        def double_weight(rows, cols, center, sigma):
            return 2.0

        frame1 = gaussian_blob((33, 33), (16.0, 16.0))
        frame2 = gaussian_blob((33, 33), (16.3, 16.1))
        points, windows = [[16.5, 16.5]], [[17, 17]]

        plain = LucasKanadeFlow(iteration_count=3)
        flow_1 = plain.evaluate(frame1, frame2, points, windows)
        doubled = LucasKanadeFlow(iteration_count=3, weighting=double_weight)
        flow_2 = doubled.evaluate(frame1, frame2, points, windows)

        np.testing.assert_allclose(flow_2, flow_1, rtol=1e-6, atol=1e-7)
        assert doubled.corner_response[0] == pytest.approx(
            2.0 * plain.corner_response[0], rel=1e-6
        )


class TestLucasKanadeFlow:
    """Tests for LucasKanadeFlow.evaluate."""

    def test_defaults(self):
        """Test default solver settings."""
        from lkflow.tracking import LucasKanadeFlow, uniform_weight

        lk = LucasKanadeFlow()
        assert lk.sigma == pytest.approx(0.84)
        assert lk.iteration_count == 10
        assert lk.weighting is uniform_weight
        assert len(lk.corner_response) == 0

    def test_from_config(self):
        """Test creating a solver from a config."""
        from lkflow.core.config import FlowConfig
        from lkflow.tracking import LucasKanadeFlow, gaussian_weight

        lk = LucasKanadeFlow.from_config(
            FlowConfig(sigma=2.0, iteration_count=4, weighting="gaussian", workers=1)
        )
        assert lk.sigma == 2.0
        assert lk.iteration_count == 4
        assert lk.weighting is gaussian_weight
        assert lk.workers == 1

    def test_shapes(self):
        """Test flow and corner response have one entry per point."""
        from lkflow.tracking import LucasKanadeFlow

        lk = LucasKanadeFlow()
        points = np.array([[8, 8], [16, 20], [0, 0], [25, 10]], dtype=np.float32)
        windows = np.full((4, 2), 7, dtype=np.float32)

        flow = lk.evaluate(random_frame(seed=1), random_frame(seed=2), points, windows)

        assert flow.shape == (4, 2)
        assert lk.corner_response.shape == (4,)

    def test_random_frames_small(self):
        """Test points near the border of tiny random frames."""
        from lkflow.tracking import LucasKanadeFlow

        lk = LucasKanadeFlow()
        rng = np.random.default_rng(11)
        points = rng.integers(0, 2, size=(10, 2)).astype(np.float32)
        windows = np.full((10, 2), 3, dtype=np.float32)

        flow = lk.evaluate(random_frame((5, 5), 3), random_frame((5, 5), 4), points, windows)

        assert len(flow) == len(points)
        assert len(lk.corner_response) == len(points)

    def test_continuation_identity(self):
        """Test that use_previous refines and returns the caller's buffer."""
        from lkflow.tracking import LucasKanadeFlow

        lk = LucasKanadeFlow()
        points = np.array([[10, 10], [20, 12]], dtype=np.float32)
        windows = np.full((2, 2), 9, dtype=np.float32)
        flow = np.array([[0.5, -0.5], [1.0, 0.0]], dtype=np.float32)

        result = lk.evaluate(
            random_frame(seed=5), random_frame(seed=6), points, windows, flow, use_previous=True
        )

        assert result is flow
        assert len(lk.corner_response) == 2

    def test_buffer_reused_and_zeroed(self):
        """Test that a right-sized buffer is zeroed and reused."""
        from lkflow.tracking import LucasKanadeFlow

        lk = LucasKanadeFlow()
        frame = random_frame(seed=7)
        points = np.array([[10, 10]], dtype=np.float32)
        windows = np.array([[9, 9]], dtype=np.float32)
        flow = np.array([[3.0, -2.0]], dtype=np.float32)

        result = lk.evaluate(frame, frame, points, windows, flow)

        assert result is flow
        np.testing.assert_array_equal(result, [[0.0, 0.0]])

    def test_buffer_wrong_length_replaced(self):
        """Test that a wrongly sized buffer is replaced when not continuing."""
        from lkflow.tracking import LucasKanadeFlow

        lk = LucasKanadeFlow()
        frame = random_frame(seed=8)
        flow = np.ones((5, 2), dtype=np.float32)

        result = lk.evaluate(frame, frame, [[10, 10]], [[9, 9]], flow)

        assert result is not flow
        assert result.shape == (1, 2)

    def test_zero_motion(self):
        """Test that identical frames leave the flow at zero."""
        from lkflow.tracking import LucasKanadeFlow

        lk = LucasKanadeFlow(iteration_count=10)
        frame = random_frame(seed=9)
        points = np.array([[8, 8], [16, 16], [24, 10], [5, 27]], dtype=np.float32)
        windows = np.array([[9, 9], [15, 15], [7, 11], [5, 5]], dtype=np.float32)

        flow = lk.evaluate(frame, frame.copy(), points, windows)

        np.testing.assert_array_equal(flow, np.zeros((4, 2)))
        assert np.all(np.isfinite(lk.corner_response))
        assert np.all(lk.corner_response > 0)

    def test_zero_motion_gaussian_weighting(self):
        """Test identical frames with Gaussian weighting."""
        from lkflow.tracking import LucasKanadeFlow, gaussian_weight

        lk = LucasKanadeFlow(sigma=2.0, weighting=gaussian_weight)
        frame = random_frame(seed=10)

        flow = lk.evaluate(frame, frame, [[16, 16]], [[11, 11]])

        np.testing.assert_array_equal(flow, [[0.0, 0.0]])

    def test_degenerate_window_skipped(self):
        """Test that clipped-away windows leave flow untouched."""
        from lkflow.tracking import LucasKanadeFlow

        lk = LucasKanadeFlow()
        points = np.array([[0, 0], [16, 16], [40, 40]], dtype=np.float32)
        windows = np.array([[2, 2], [9, 9], [5, 5]], dtype=np.float32)
        flow = np.array([[0.5, -0.25], [0.0, 0.0], [1.5, 2.5]], dtype=np.float32)

        lk.evaluate(
            random_frame(seed=12), random_frame(seed=13), points, windows, flow, use_previous=True
        )

        np.testing.assert_array_equal(flow[0], [0.5, -0.25])
        np.testing.assert_array_equal(flow[2], [1.5, 2.5])
        assert np.isnan(lk.corner_response[0])
        assert np.isnan(lk.corner_response[2])
        assert np.isfinite(lk.corner_response[1])

    def test_flat_field(self):
        """Test the 5x5 flat frame scenario."""
        from lkflow.tracking import LucasKanadeFlow

        lk = LucasKanadeFlow(iteration_count=5)
        frame = np.full((5, 5), 128, dtype=np.uint8)

        flow = lk.evaluate(frame, frame.copy(), [[2, 2]], [[3, 3]])

        np.testing.assert_array_equal(flow, [[0.0, 0.0]])
        assert lk.corner_response[0] == 0.0

    def test_flat_field_keeps_previous(self):
        """Test that a singular tensor never moves a continued flow."""
        from lkflow.tracking import LucasKanadeFlow

        lk = LucasKanadeFlow(iteration_count=5)
        flat = np.full((12, 12), 50, dtype=np.uint8)
        flow = np.array([[0.3, -0.2]], dtype=np.float32)

        lk.evaluate(flat, flat, [[6, 6]], [[5, 5]], flow, use_previous=True)

        np.testing.assert_array_equal(flow, np.array([[0.3, -0.2]], dtype=np.float32))
        assert lk.corner_response[0] == 0.0

    def test_subpixel_shift_converges(self):
        """Test convergence to a known sub-pixel translation."""
        from lkflow.tracking import LucasKanadeFlow

        shape = (33, 33)
        shift = (0.2, 0.15)
        frame1 = gaussian_blob(shape, (16.0, 16.0))
        frame2 = gaussian_blob(shape, (16.0 + shift[0], 16.0 + shift[1]))

        lk = LucasKanadeFlow(iteration_count=20)
        flow = lk.evaluate(frame1, frame2, [[16.5, 16.5]], [[17, 17]])

        np.testing.assert_allclose(flow[0], shift, atol=1e-2)
        assert lk.corner_response[0] > 0

    def test_split_iterations_match_single_run(self):
        """Test that continuing a run equals running all iterations at once."""
        from lkflow.tracking import LucasKanadeFlow

        frame1 = gaussian_blob((33, 33), (16.0, 16.0))
        frame2 = gaussian_blob((33, 33), (16.4, 15.7))
        points = [[16.5, 16.5]]
        windows = [[17, 17]]

        full = LucasKanadeFlow(iteration_count=8).evaluate(frame1, frame2, points, windows)

        lk = LucasKanadeFlow(iteration_count=4)
        flow = lk.evaluate(frame1, frame2, points, windows)
        lk.evaluate(frame1, frame2, points, windows, flow, use_previous=True)

        np.testing.assert_array_equal(flow, full)

    def test_deterministic(self):
        """Test repeated calls and worker counts give identical results."""
        from lkflow.tracking import LucasKanadeFlow

        frame1 = random_frame(seed=14)
        frame2 = np.roll(frame1, 1, axis=1)
        rng = np.random.default_rng(15)
        points = rng.uniform(0, 32, size=(20, 2)).astype(np.float32)
        windows = rng.uniform(3, 12, size=(20, 2)).astype(np.float32)

        results = []
        for workers in (1, 1, 4):
            lk = LucasKanadeFlow(workers=workers)
            flow = lk.evaluate(frame1, frame2, points, windows)
            results.append((flow, lk.corner_response))

        for flow, response in results[1:]:
            np.testing.assert_array_equal(flow, results[0][0])
            np.testing.assert_array_equal(response, results[0][1])

    def test_corner_response_formula(self):
        """Test the corner response of a known tensor."""
        from lkflow.tracking import corner_response

        assert corner_response(4.0, 0.0, 1.0) == pytest.approx(2.0)
        assert corner_response(3.0, 4.0, 3.0) == pytest.approx(2.0)
        assert corner_response(0.0, 0.0, 0.0) == 0.0

    def test_callable(self):
        """Test that the solver can be called directly."""
        from lkflow.tracking import LucasKanadeFlow

        frame = random_frame(seed=16)
        flow = LucasKanadeFlow()(frame, frame, [[10, 10]], [[5, 5]])
        assert flow.shape == (1, 2)


class TestPreconditions:
    """Tests for evaluate precondition checks."""

    def test_frame_size_mismatch(self):
        from lkflow.tracking import LucasKanadeFlow

        with pytest.raises(ValueError):
            LucasKanadeFlow().evaluate(
                random_frame((10, 10)), random_frame((10, 12)), [[5, 5]], [[3, 3]]
            )

    def test_multichannel(self):
        from lkflow.tracking import LucasKanadeFlow

        frame = np.zeros((10, 10, 3), dtype=np.uint8)
        with pytest.raises(ValueError):
            LucasKanadeFlow().evaluate(frame, frame, [[5, 5]], [[3, 3]])

    def test_not_8bit(self):
        from lkflow.tracking import LucasKanadeFlow

        frame = np.zeros((10, 10), dtype=np.uint16)
        with pytest.raises(ValueError):
            LucasKanadeFlow().evaluate(frame, frame, [[5, 5]], [[3, 3]])

    def test_points_windows_mismatch(self):
        from lkflow.tracking import LucasKanadeFlow

        frame = random_frame((10, 10))
        with pytest.raises(ValueError):
            LucasKanadeFlow().evaluate(frame, frame, [[5, 5], [6, 6]], [[3, 3]])

    def test_use_previous_without_flow(self):
        from lkflow.tracking import LucasKanadeFlow

        frame = random_frame((10, 10))
        with pytest.raises(ValueError):
            LucasKanadeFlow().evaluate(frame, frame, [[5, 5]], [[3, 3]], use_previous=True)

    def test_use_previous_list_flow(self):
        from lkflow.tracking import LucasKanadeFlow

        frame = random_frame((10, 10))
        with pytest.raises(ValueError):
            LucasKanadeFlow().evaluate(
                frame, frame, [[5, 5]], [[3, 3]], [[0.0, 0.0]], use_previous=True
            )

    def test_list_flow_replaced_without_continuation(self):
        from lkflow.tracking import LucasKanadeFlow

        frame = random_frame((10, 10))
        flow = LucasKanadeFlow().evaluate(frame, frame, [[5, 5]], [[3, 3]], [[1.0, 2.0]])
        assert isinstance(flow, np.ndarray)
        np.testing.assert_array_equal(flow, [[0.0, 0.0]])

    def test_use_previous_wrong_length(self):
        from lkflow.tracking import LucasKanadeFlow

        frame = random_frame((10, 10))
        flow = np.zeros((2, 2), dtype=np.float32)
        with pytest.raises(ValueError):
            LucasKanadeFlow().evaluate(
                frame, frame, [[5, 5]], [[3, 3]], flow, use_previous=True
            )


class TestGradientFields:
    """Tests for the masked gradient field builder."""

    def test_zero_outside_windows(self):
        """Test gradients only exist inside the clipped windows."""
        import cv2
        from lkflow.imgproc import GradientDirection, sobel
        from lkflow.tracking import build_gradient_fields, pair_points

        frame = random_frame((20, 20), seed=17).astype(np.float32)
        pairs = pair_points(np.array([[6, 6], [14, 12]]), np.array([[5, 5], [3, 7]]), frame.shape)

        fx, fy, mask = build_gradient_fields(frame, pairs)

        assert mask.sum() == 5 * 5 + 3 * 7
        assert np.all(fx[~mask] == 0.0)
        assert np.all(fy[~mask] == 0.0)
        expected = cv2.filter2D(frame, -1, sobel(GradientDirection.DIR_X))
        np.testing.assert_allclose(fx[mask], expected[mask], rtol=1e-5, atol=1e-3)


class TestCalcSparseFlow:
    """Tests for the calc_sparse_flow helper."""

    def test_default_windows(self):
        """Test that config window size is used for every point."""
        from lkflow.core.config import FlowConfig
        from lkflow.tracking import calc_sparse_flow

        frame = random_frame(seed=18)
        flow, response = calc_sparse_flow(
            frame, frame, [[10, 10], [20, 20]], config=FlowConfig(window_size=(7, 7))
        )

        assert flow.shape == (2, 2)
        assert response.shape == (2,)
        np.testing.assert_array_equal(flow, np.zeros((2, 2)))


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
