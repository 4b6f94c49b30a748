"""
Layout Viewer: macro floorplan visualization.

Generates plots of:
  - Placed hard and soft macros inside the fixed outline
  - Blockages, guidance regions and fences
  - Net fly-lines between macro centers and terminals
  - Annealing convergence (cost, best cost, temperature)
  - A multi-panel summary of one run
"""

from __future__ import annotations
from typing import Optional
import numpy as np
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import matplotlib.patches as patches
from matplotlib.collections import LineCollection
import matplotlib.gridspec as gridspec

from core.floorplan import Floorplan
from core.macro import HardMacro
from floorplanner.macro_annealer import FloorplanResult, MacroPlacement


# ── Color Palettes ────────────────────────────────────────────────────

MACRO_COLORS = {
    'hard': '#4A90D9',
    'soft': '#7B68EE',
}
BLOCKAGE_COLOR = '#FF6B6B'
GUIDE_COLOR = '#50C878'
FENCE_COLOR = '#FFD93D'
TERMINAL_COLOR = '#e94560'

DARK_BG = '#0d1117'
DARK_GRID = '#21262d'
DARK_TEXT = '#c9d1d9'
ACCENT = '#58a6ff'


class LayoutViewer:
    """
    Renders a floorplan and the outcome of an annealing run.

    Macro geometry comes from a FloorplanResult when one is given,
    otherwise from the macros' current positions in the floorplan.
    """

    def __init__(self, floorplan: Floorplan, style: str = 'dark'):
        self.floorplan = floorplan
        self.style = style
        self._hard = {m.name for m in floorplan.macros if isinstance(m, HardMacro)}

        if style == 'dark':
            plt.rcParams.update({
                'figure.facecolor': DARK_BG,
                'axes.facecolor': DARK_BG,
                'axes.edgecolor': DARK_GRID,
                'text.color': DARK_TEXT,
                'xtick.color': DARK_TEXT,
                'ytick.color': DARK_TEXT,
                'axes.labelcolor': DARK_TEXT,
                'font.family': 'sans-serif',
                'font.size': 10,
            })

    def placements(self, result: Optional[FloorplanResult] = None) -> list[MacroPlacement]:
        if result is not None:
            return result.placements
        return [MacroPlacement(m.name, m.x, m.y, m.width, m.height)
                for m in self.floorplan.macros]

    def plot_floorplan(self, result: Optional[FloorplanResult] = None,
                       save_path: str = 'floorplan.png',
                       show_labels: bool = True,
                       show_nets: bool = False,
                       figsize: tuple = (12, 10),
                       dpi: int = 150) -> None:
        """Plot the placed macros with outline, blockages, guides and fences."""
        fig, ax = plt.subplots(1, 1, figsize=figsize, dpi=dpi)
        self._draw_floorplan_on_ax(ax, result, show_labels=show_labels)

        if show_nets:
            self._draw_nets(ax, result)

        legend_elements = [
            patches.Patch(facecolor=MACRO_COLORS['hard'], label='Hard Macro'),
            patches.Patch(facecolor=MACRO_COLORS['soft'], label='Soft Macro'),
            patches.Patch(facecolor=BLOCKAGE_COLOR, alpha=0.4, label='Blockage'),
            patches.Patch(facecolor='none', edgecolor=GUIDE_COLOR, label='Guide'),
            patches.Patch(facecolor='none', edgecolor=FENCE_COLOR, label='Fence'),
        ]
        ax.legend(handles=legend_elements, loc='upper right',
                  fontsize=8, framealpha=0.8,
                  facecolor=DARK_BG, edgecolor=DARK_GRID)

        title = 'Macro Floorplan'
        if result is not None:
            title += f'  (cost {result.final_cost:.4f}, seed {result.seed})'
        ax.set_xlabel('X', fontsize=11)
        ax.set_ylabel('Y', fontsize=11)
        ax.set_title(title, fontsize=14, fontweight='bold', color=ACCENT, pad=15)

        plt.tight_layout()
        plt.savefig(save_path, bbox_inches='tight', facecolor=fig.get_facecolor())
        plt.close()
        print(f"  Saved floorplan → {save_path}")

    def plot_convergence(self, cost_history: list[float],
                         save_path: str = 'convergence.png',
                         title: str = 'Fast SA Convergence',
                         temperature_history: list[float] | None = None,
                         figsize: tuple = (12, 5),
                         dpi: int = 150) -> None:
        """Plot the cost at the end of each temperature step."""
        fig, ax1 = plt.subplots(1, 1, figsize=figsize, dpi=dpi)

        x = range(len(cost_history))
        ax1.plot(x, cost_history, color=ACCENT, linewidth=1.5,
                 alpha=0.9, label='Cost')
        if cost_history:
            running_min = np.minimum.accumulate(cost_history)
            ax1.plot(x, running_min, color='#ff6b6b', linewidth=2,
                     linestyle='--', label='Best Cost', alpha=0.8)

        ax1.set_xlabel('Temperature step', fontsize=11)
        ax1.set_ylabel('Cost', fontsize=11, color=ACCENT)
        ax1.tick_params(axis='y', labelcolor=ACCENT)

        if temperature_history:
            ax2 = ax1.twinx()
            ax2.plot(range(len(temperature_history)), temperature_history,
                     color='#ffd93d', linewidth=1, alpha=0.5, label='Temperature')
            ax2.set_ylabel('Temperature', fontsize=11, color='#ffd93d')
            ax2.tick_params(axis='y', labelcolor='#ffd93d')
            ax2.set_yscale('log')

        ax1.set_title(title, fontsize=14, fontweight='bold', color=ACCENT, pad=15)
        ax1.legend(loc='upper right', fontsize=9,
                   facecolor=DARK_BG, edgecolor=DARK_GRID)
        ax1.grid(True, alpha=0.1)

        plt.tight_layout()
        plt.savefig(save_path, bbox_inches='tight', facecolor=fig.get_facecolor())
        plt.close()
        print(f"  Saved convergence plot → {save_path}")

    def plot_dashboard(self, result: FloorplanResult,
                       save_path: str = 'dashboard.png',
                       figsize: tuple = (20, 12),
                       dpi: int = 150) -> None:
        """Floorplan, penalty breakdown, convergence and acceptance in one figure."""
        fig = plt.figure(figsize=figsize, dpi=dpi)
        gs = gridspec.GridSpec(2, 3, hspace=0.35, wspace=0.3)

        ax1 = fig.add_subplot(gs[:, 0:2])
        self._draw_floorplan_on_ax(ax1, result, show_labels=True)
        ax1.set_title('Floorplan', fontsize=12, fontweight='bold', color=ACCENT)

        ax2 = fig.add_subplot(gs[0, 2])
        names = list(result.penalties)
        ax2.barh(names, [result.penalties[n] for n in names],
                 color=ACCENT, alpha=0.7, edgecolor='white')
        ax2.invert_yaxis()
        ax2.set_xlabel('Normalized value', fontsize=9)
        ax2.set_title('Penalty Terms', fontsize=12, fontweight='bold', color=ACCENT)
        ax2.grid(True, alpha=0.1)

        ax3 = fig.add_subplot(gs[1, 2])
        if result.cost_history:
            ax3.plot(result.cost_history, color=ACCENT, linewidth=1)
            running_min = np.minimum.accumulate(result.cost_history)
            ax3.plot(running_min, color='#ff6b6b', linewidth=1.5, linestyle='--')
            ax3.grid(True, alpha=0.1)
        else:
            ax3.text(0.5, 0.5, 'No optimization data', ha='center', va='center',
                     fontsize=11, color=DARK_TEXT)
        ax3.set_title('Convergence', fontsize=12, fontweight='bold', color=ACCENT)

        fig.suptitle(
            f'Floorplan Summary: seed {result.seed}, cost {result.final_cost:.4f}, '
            f'{result.iterations} moves in {result.runtime_seconds:.1f}s',
            fontsize=16, fontweight='bold', color=ACCENT, y=0.98)

        plt.savefig(save_path, bbox_inches='tight', facecolor=fig.get_facecolor())
        plt.close()
        print(f"  Saved dashboard → {save_path}")

    # ── Helper Methods ────────────────────────────────────────────────

    def _draw_nets(self, ax, result: Optional[FloorplanResult] = None) -> None:
        """Star fly-lines from each net's first member to the others."""
        positions = dict(self.floorplan.terminals)
        for p in self.placements(result):
            positions[p.name] = (p.x + p.width / 2, p.y + p.height / 2)

        lines = []
        for net in self.floorplan.nets:
            points = [positions[m] for m in net.members if m in positions]
            for point in points[1:]:
                lines.append([points[0], point])

        if lines:
            lc = LineCollection(lines, colors=ACCENT, linewidths=0.5, alpha=0.3)
            ax.add_collection(lc)

        if self.floorplan.terminals:
            xs, ys = zip(*self.floorplan.terminals.values())
            ax.scatter(xs, ys, s=18, marker='s', color=TERMINAL_COLOR, zorder=3)

    def _draw_floorplan_on_ax(self, ax, result: Optional[FloorplanResult] = None,
                              show_labels: bool = False) -> None:
        fp = self.floorplan
        outline = patches.Rectangle(
            (0, 0), fp.outline_width, fp.outline_height,
            linewidth=2, edgecolor=ACCENT, facecolor='none', linestyle='--', alpha=0.7
        )
        ax.add_patch(outline)

        for b in fp.blockages:
            ax.add_patch(patches.Rectangle(
                (b.x, b.y), b.width, b.height,
                linewidth=1, edgecolor=BLOCKAGE_COLOR, facecolor=BLOCKAGE_COLOR,
                alpha=0.3, hatch='//'
            ))

        for regions, color, style in ((fp.guides, GUIDE_COLOR, ':'),
                                      (fp.fences, FENCE_COLOR, '-.')):
            for rect in regions.values():
                ax.add_patch(patches.Rectangle(
                    (rect.x, rect.y), rect.width, rect.height,
                    linewidth=1.2, edgecolor=color, facecolor='none', linestyle=style
                ))

        for p in self.placements(result):
            kind = 'hard' if p.name in self._hard else 'soft'
            ax.add_patch(patches.Rectangle(
                (p.x, p.y), p.width, p.height,
                linewidth=1.2, edgecolor='white',
                facecolor=MACRO_COLORS[kind], alpha=0.8
            ))
            if show_labels and p.area > 0:
                font_size = max(5, min(9, p.width / max(fp.outline_width, 1e-9) * 60))
                ax.text(p.x + p.width / 2, p.y + p.height / 2, p.name,
                        ha='center', va='center', fontsize=font_size,
                        color='white', fontweight='bold', alpha=0.9)

        x_max = max([fp.outline_width] + [p.x + p.width for p in self.placements(result)])
        y_max = max([fp.outline_height] + [p.y + p.height for p in self.placements(result)])
        margin = max(x_max, y_max) * 0.05
        ax.set_xlim(-margin, x_max + margin)
        ax.set_ylim(-margin, y_max + margin)
        ax.set_aspect('equal')
        ax.grid(True, alpha=0.1, color=DARK_GRID)
