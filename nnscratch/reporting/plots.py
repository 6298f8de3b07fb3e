"""Headless-safe plotting adapters."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Mapping, Tuple


class PlotAdapter:
    """Collect per-split loss and accuracy and optionally emit a matplotlib figure."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self._history: Dict[str, List[Tuple[int, float, float]]] = {}
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    def for_split(self, split: str):
        def _record(iteration: int, metrics: Mapping[str, float]) -> None:
            self.record(split, iteration, metrics)

        return _record

    def record(self, split: str, iteration: int, metrics: Mapping[str, float]) -> None:
        if not self.enable_plots:
            return
        loss = float(metrics.get("loss", float("nan")))
        accuracy = float(metrics.get("accuracy", float("nan")))
        self._history.setdefault(split, []).append((iteration, loss, accuracy))

    def close(self) -> Path | None:
        if not self.enable_plots or not self._history:
            return None
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        fig, (ax_loss, ax_acc) = plt.subplots(1, 2, figsize=(10, 4))
        for split, points in sorted(self._history.items()):
            steps, losses, accs = zip(*points)
            ax_loss.plot(steps, losses, label=split)
            ax_acc.plot(steps, accs, label=split)
        ax_loss.set_xlabel("Iteration")
        ax_loss.set_ylabel("Cost")
        ax_loss.set_title("Cost")
        ax_acc.set_xlabel("Iteration")
        ax_acc.set_ylabel("Accuracy")
        ax_acc.set_title("Classification accuracy")
        ax_loss.legend()
        ax_acc.legend()
        plot_path = self.run_dir / "loss.png"
        fig.tight_layout()
        fig.savefig(plot_path)
        plt.close(fig)
        return plot_path
