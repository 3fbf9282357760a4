"""
Table helpers shared by the migration commands.
"""
from apps.migration.stats import QueueStats, RunStats, format_duration


def write_table(stdout, headers, rows):
    rows = [[str(cell) for cell in row] for row in rows]
    widths = [len(str(h)) for h in headers]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

    line = '+' + '+'.join('-' * (w + 2) for w in widths) + '+'
    stdout.write(line)
    stdout.write('| ' + ' | '.join(str(h).ljust(w) for h, w in zip(headers, widths)) + ' |')
    stdout.write(line)
    for row in rows:
        stdout.write('| ' + ' | '.join(cell.ljust(w) for cell, w in zip(row, widths)) + ' |')
    stdout.write(line)


def write_run_stats(stdout, stats: RunStats):
    write_table(stdout, ['Metric', 'Value'], [
        ['Run ID', stats.run_id],
        ['Status', stats.status],
        ['Strategy', stats.strategy],
        ['Total emails', stats.total],
        ['Dispatched', stats.dispatched],
        ['Processed', stats.processed],
        ['Failed', stats.failed],
        ['Remaining', stats.remaining],
        ['Completion', f'{stats.completion_percent}%'],
        ['Success rate', f'{stats.success_rate}%'],
        ['Rate', f'{stats.rate_per_minute}/min'],
        ['Elapsed', format_duration(stats.elapsed)],
        ['ETA', format_duration(stats.eta)],
    ])


def write_queue_stats(stdout, stats: QueueStats):
    write_table(stdout, ['Queue', 'Value'], [
        ['In-flight tasks', stats.in_flight],
        ['Stale claims', stats.stale],
        ['Active workers (est.)', stats.active_workers],
        ['Oldest claim', stats.oldest_claim_at or '-'],
    ])
