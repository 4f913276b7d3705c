from matplotlib.figure import Figure
from matplotlib.backends.backend_agg import FigureCanvasAgg

from performance import calculate_metrics, get_detailed_analysis, compare_execution

STAGE_COLORS = {
    'IF': "#3498db",
    'ID': "#9b59b6",
    'EX': "#f1c40f",
    'MEM': "#2ecc71",
    'WB': "#e74c3c",
}

STAT_COLORS = {
    'cycles': "#3498db",
    'instructions': "#2ecc71",
    'stalls': "#e74c3c",
    'branches': "#f1c40f",
    'efficiency': "#1abc9c",
    'registers': "#9b59b6",
}


def _label_bars(ax, bars):
    for b in bars:
        h = b.get_height()
        ax.text(b.get_x() + b.get_width() / 2, h + 0.1, f'{int(h)}', ha='center')


def plot_comparison(ax, state):
    cmp = compare_execution(state)
    cats = ['Sequential', 'Ideal', 'Actual']
    vals = [cmp['sequential'], cmp['idealPipelined'], cmp['actualPipelined']]
    cols = [STAT_COLORS['registers'], STAT_COLORS['instructions'], STAT_COLORS['cycles']]
    _label_bars(ax, ax.bar(cats, vals, color=cols))
    ax.set_ylabel('Cycles')
    ax.set_title('Execution Comparison')


def plot_stalls(ax, state):
    m = calculate_metrics(state)
    cats = ['Data', 'Control', 'Structural']
    vals = [m['dataHazardStalls'], m['controlHazardStalls'], m['structuralHazardStalls']]
    cols = [STAT_COLORS['stalls'], STAT_COLORS['branches'], STAT_COLORS['efficiency']]
    _label_bars(ax, ax.bar(cats, vals, color=cols))
    ax.set_ylabel('Count')
    ax.set_title('Unresolved Hazards')


def plot_breakdown(ax, state):
    breakdown = get_detailed_analysis(state)['hazardBreakdown']
    counts = {k: v for k, v in breakdown.items() if v}
    ax.set_title('Hazard Breakdown')
    if not counts:
        ax.text(0.5, 0.5, 'No hazards logged', ha='center', va='center', transform=ax.transAxes)
        ax.set_axis_off()
        return
    ax.pie(list(counts.values()), labels=list(counts), autopct='%1.1f%%', startangle=90)
    ax.axis('equal')


def plot_cpi(ax, state):
    cpi = calculate_metrics(state)['cpi']
    ax.bar(['CPI'], [cpi], color=STAT_COLORS['cycles'])
    ax.set_ylim(0, max(1.0, cpi * 1.2))
    ax.set_title('CPI')
    ax.text(0, cpi + 0.05, f'{cpi:.2f}', ha='center')


CHARTS = {
    'Execution': plot_comparison,
    'Stalls': plot_stalls,
    'Hazards': plot_breakdown,
    'CPI': plot_cpi,
}


def make_figure(state, plot, figsize=(8, 5)):
    fig = Figure(figsize=figsize)
    FigureCanvasAgg(fig)
    plot(fig.add_subplot(), state)
    fig.tight_layout()
    return fig


def save_charts(state, path):
    """All charts side by side in one image file."""
    fig = Figure(figsize=(5 * len(CHARTS), 5))
    FigureCanvasAgg(fig)
    for ax, plot in zip(fig.subplots(1, len(CHARTS)), CHARTS.values()):
        plot(ax, state)
    fig.tight_layout()
    fig.savefig(path)
    return path
