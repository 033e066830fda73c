"""
cardiac_tissue test suite

- test_cell.py: single-cell kernels, APD and upstroke metrics
- test_kernel.py / test_grid.py: Laplacian, grid state and snapshots
- test_stimulus.py / test_fibrosis.py: stimulus protocols and seeded masks
- test_stepper.py: one reaction-diffusion step
- test_features.py: activation/APD trackers and detectors
- test_progress.py: progress channel and reporter
- test_simulation.py: orchestrator, errors and tissue scenarios
- test_app.py: scenario builder and command line
"""
