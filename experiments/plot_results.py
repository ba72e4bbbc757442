# experiments/plot_results.py
# Achieved publish rate per publisher across runs (box plot)

import argparse
import csv
import glob

import matplotlib.pyplot as plt


def load_rows(pattern, role):
    rows = []
    for file in sorted(glob.glob(pattern)):
        with open(file, 'r') as f:
            for row in csv.DictReader(f):
                if row['role'] == role:
                    rows.append(row)
    return rows


def achieved_rates(rows):
    rates = []
    for row in rows:
        if row['status'] != 'success' or not row['sent'] or not row['elapsed']:
            continue
        elapsed = float(row['elapsed'])
        if elapsed > 0:
            rates.append(int(row['sent']) / elapsed)
    return rates


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--pattern", default="results_run_*.csv")
    parser.add_argument("--interval", type=float, default=0.02,
                        help="interval the runs were configured with")
    args = parser.parse_args()

    publishers = load_rows(args.pattern, 'publisher')
    if not publishers:
        print(f"No publisher rows in {args.pattern}")
        return

    rates = achieved_rates(publishers)
    ok = sum(1 for row in publishers if row['status'] == 'success')
    print(f"Publisher success ratio: {ok / len(publishers):.4f}")

    plt.figure()
    plt.boxplot([rates], tick_labels=['Publishers'])
    plt.axhline(1.0 / args.interval, linestyle='--', label='Target rate')
    plt.ylabel("Messages per second")
    plt.title("Achieved Publish Rate")
    plt.legend()
    plt.grid(True)
    plt.show()


if __name__ == "__main__":
    main()
