#!/usr/bin/env python
"""
Copula risk forecast pipeline.
Coordinates loss preparation, AR-GARCH marginals, copula estimation and
goodness of fit, and Monte Carlo forecasting of aggregated portfolio loss.
"""
import sys
import argparse
from pathlib import Path
import logging
from datetime import datetime
import pandas as pd
from typing import Dict, Optional
import traceback
import warnings

# Add project root to path
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.append(str(project_root))

from config import ForecastConfig
from models import ForecastResult
from data_manager.data_loader import DataLoader
from data_manager.data_validator import DataValidator
from data_manager.synthetic import simulate_loss_panel, losses_to_prices
from garch.data_prep import GarchDataPrep
from garch.estimator import MarginalEstimator, standardized_residuals
from garch.forecaster import ScenarioForecaster
from copula.pseudo_obs import pseudo_observations
from copula.estimator import fit_copula, compare_copulas, select_copula
from copula.gof import gof_bootstrap, rosenblatt_diagnostic


def setup_logging(output_dir: Path) -> logging.Logger:
    """
    Configure logging with both file and console handlers

    Parameters:
    -----------
    output_dir : Path
        Directory for log file

    Returns:
    --------
    logging.Logger
        Configured logger
    """
    log_dir = output_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"risk_forecast_{timestamp}.log"

    root = logging.getLogger()
    root.setLevel(logging.INFO)

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(
        logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter('%(message)s'))

    root.addHandler(file_handler)
    root.addHandler(console_handler)

    return logging.getLogger("risk_forecast")


def initialize_components(config: ForecastConfig, logger: Optional[logging.Logger] = None) -> Dict:
    """Initialize all analysis components"""
    if logger is None:
        logger = logging.getLogger('risk_forecast')

    logger.info("Creating data components...")
    validator = DataValidator(min_rows=config.min_observations + 1)
    loader = DataLoader(validator=validator, drop_incomplete=config.drop_incomplete)
    prep = GarchDataPrep(min_observations=config.min_observations)

    logger.info("Creating marginal estimator...")
    estimator = MarginalEstimator(min_observations=config.min_observations)

    return {
        'config': config,
        'loader': loader,
        'validator': validator,
        'prep': prep,
        'estimator': estimator,
    }


def run_analysis(components: Dict, prices: pd.DataFrame, logger: logging.Logger,
                 show_progress: bool = True) -> ForecastResult:
    """Run the pipeline from a price panel to the forecast summary"""
    config: ForecastConfig = components['config']
    logger.info("Starting risk forecast pipeline...")

    try:
        is_valid, issues = components['validator'].validate_prices(prices)
        if not is_valid:
            raise ValueError(f"Invalid price panel: {'; '.join(issues)}")

        prep = components['prep']
        losses = prep.prepare_losses(prices, frequency=config.frequency)
        if not prep.verify_data_quality(losses):
            raise ValueError("Insufficient data or missing values in loss panel")

        # Marginals
        estimator = components['estimator']
        marginals = estimator.fit_panel(losses)
        for fitted in marginals.values():
            estimator.diagnose(fitted)

        # Dependence
        residuals = standardized_residuals(marginals)
        u = pseudo_observations(residuals)
        logger.info(f"Kendall's tau of standardized residuals:\n{u.corr(method='kendall').round(3)}")

        copulas = {family: fit_copula(family, u.values) for family in config.copula_families}
        logger.info(f"Copula comparison:\n{compare_copulas(copulas)}")

        gof = {}
        for offset, (family, cop) in enumerate(copulas.items()):
            rosenblatt_diagnostic(cop, u.values)
            if config.gof_reps > 0:
                gof[family] = gof_bootstrap(
                    cop, u.values,
                    n_boot=config.gof_reps,
                    statistic=config.gof_statistic,
                    seed=config.random_seed + offset,
                    show_progress=show_progress
                )

        chosen = (select_copula(copulas) if config.simulation_copula == 'auto'
                  else config.simulation_copula)

        # Scenarios
        forecaster = ScenarioForecaster(
            marginals=marginals,
            copula=copulas[chosen],
            horizon=config.horizon,
            n_replicates=config.n_replicates,
            random_seed=config.random_seed,
            parallel=config.parallel,
            max_workers=config.max_workers,
            show_progress=show_progress
        )
        paths = forecaster.simulate_paths()
        summary = forecaster.summarize(paths, alpha=config.alpha, ci_level=config.ci_level)

        logger.info("Pipeline completed successfully")
        return ForecastResult(
            losses=losses,
            marginals=marginals,
            pseudo_obs=u,
            copulas=copulas,
            gof=gof,
            paths=paths,
            summary=summary,
            selected_copula=chosen
        )

    except Exception as e:
        logger.error(f"Error in analysis pipeline: {str(e)}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        raise


def load_prices(args: argparse.Namespace, components: Dict, logger: logging.Logger) -> pd.DataFrame:
    """Price panel from CSV, yfinance or the synthetic generator"""
    config: ForecastConfig = components['config']
    loader: DataLoader = components['loader']
    if args.synthetic:
        logger.info("Using a synthetic Gumbel-dependent panel")
        losses = simulate_loss_panel(n=args.synthetic, assets=config.assets or ('A', 'B'),
                                     seed=config.random_seed)
        return losses_to_prices(losses)
    if args.csv:
        return loader.load_csv(args.csv, assets=config.assets, start=config.start, end=config.end)
    if config.assets:
        return loader.fetch_prices(config.assets, start=config.start, end=config.end)
    raise ValueError("Provide --csv, --tickers or --synthetic")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Copula-based VaR forecast of aggregated portfolio loss")
    parser.add_argument('--csv', type=Path, help="wide CSV of prices, first column dates")
    parser.add_argument('--tickers', nargs='+', dest='assets', help="asset columns or tickers")
    parser.add_argument('--start')
    parser.add_argument('--end')
    parser.add_argument('--frequency', choices=['daily', 'weekly'])
    parser.add_argument('--drop-incomplete', action='store_true', default=None,
                        help="drop dates with a missing price instead of failing")
    parser.add_argument('--horizon', type=int)
    parser.add_argument('--replicates', type=int, dest='n_replicates')
    parser.add_argument('--seed', type=int, dest='random_seed')
    parser.add_argument('--alpha', type=float)
    parser.add_argument('--copula', choices=['gumbel', 't', 'auto'], dest='simulation_copula')
    parser.add_argument('--gof-reps', type=int, dest='gof_reps')
    parser.add_argument('--gof-statistic', choices=['SnB', 'AnChisq'], dest='gof_statistic')
    parser.add_argument('--parallel', action='store_true', default=None)
    parser.add_argument('--workers', type=int, dest='max_workers')
    parser.add_argument('--synthetic', type=int, metavar='N', help="simulate N days instead of loading data")
    parser.add_argument('--output-dir', type=Path, default=project_root / "results")
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point with configuration and setup"""
    args = parse_args(argv)
    args.output_dir.mkdir(parents=True, exist_ok=True)
    logger = setup_logging(args.output_dir)
    warnings.filterwarnings('ignore', category=RuntimeWarning)

    try:
        config = ForecastConfig.from_dict(vars(args))
        logger.info(f"Configuration: {config}")
        components = initialize_components(config, logger)
        prices = load_prices(args, components, logger)
        result = run_analysis(components, prices, logger)

        summary_file = args.output_dir / "forecast_summary.csv"
        result.summary.table.to_csv(summary_file)
        logger.info(f"\nForecast of aggregated loss ({result.selected_copula} copula):\n"
                    f"{result.summary.table.round(5)}")
        for family, test in result.gof.items():
            logger.info(f"GoF {family}: {test.statistic_name}={test.statistic:.4f} "
                        f"p-value={test.p_value:.4f}")
        logger.info(f"Summary written to {summary_file}")
        return result

    except Exception as e:
        logger.error(f"Pipeline failed: {str(e)}")
        raise


if __name__ == '__main__':
    main()
