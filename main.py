"""
Main pipeline execution script: census income classification report
"""

import argparse
import logging
import sys
import traceback
import pandas as pd
import numpy as np

from census_income.data_loader import DataLoader
from census_income.preprocessor import Preprocessor
from census_income.resampling import ResamplingPlanner
from census_income.trainer import Trainer
from census_income.evaluator import Evaluator
from census_income.visualization import Visualizer
from census_income.utils import (
    setup_logging, load_config, save_results, create_output_directories,
    save_predictions, save_feature_importance, save_tuning_summary
)

logger = logging.getLogger(__name__)


def visualize_model_results(model_name: str,
                            model_results: dict,
                            visualizer: Visualizer) -> None:
    """
    Create visualizations for a single model

    Args:
        model_name: Name of the model
        model_results: Training results
        visualizer: Visualizer instance
    """
    logger.info(f"Creating visualizations for {model_name}...")

    try:
        if model_results.get('tuning_summary') is not None:
            visualizer.plot_tuning_profile(model_results['tuning_summary'], model_name)

        if model_results.get('feature_importance') is not None:
            visualizer.plot_feature_importance(model_results['feature_importance'], model_name, top_n=30)

    except Exception as e:
        logger.error(f"Error creating visualizations for {model_name}: {str(e)}")
        logger.error(traceback.format_exc())


def run_pipeline(config: dict, use_cache: bool = True, skip_eda: bool = False) -> dict:
    """
    Run the whole report on an already loaded configuration

    Args:
        config: Configuration dictionary
        use_cache: Whether persisted tuning results and fits may be reused
        skip_eda: Skip the exploratory plots

    Returns:
        Final results dictionary
    """
    config.setdefault('training', {})['use_cache'] = use_cache
    output_config = config.get('output', {})

    logger.info("=" * 60)
    logger.info("Starting Census Income Pipeline")
    logger.info("=" * 60)

    create_output_directories(config)

    data_loader = DataLoader(config)
    evaluator = Evaluator(config)
    visualizer = Visualizer(config)

    # Load data
    logger.info("\n" + "=" * 60)
    logger.info("LOADING DATA")
    logger.info("=" * 60)

    try:
        train_df, test_df = data_loader.load_data()
    except Exception as e:
        logger.error(f"Failed to load data: {str(e)}")
        logger.error(traceback.format_exc())
        raise

    data_summary = data_loader.get_data_summary()
    logger.info("Dataset summary:")
    for key, value in data_summary.items():
        logger.info(f"  {key}: {value}")

    if not skip_eda:
        logger.info("\n" + "=" * 60)
        logger.info("EXPLORATORY PLOTS")
        logger.info("=" * 60)

        try:
            visualizer.run_eda(train_df, test_df, data_loader.numeric_columns, data_loader.categorical_columns)
        except Exception as e:
            logger.error(f"Error creating exploratory plots: {str(e)}")
            logger.error(traceback.format_exc())

    # Preprocess
    logger.info("\n" + "=" * 60)
    logger.info("PREPROCESSING")
    logger.info("=" * 60)

    X_train_raw, y_train = data_loader.get_feature_target(train_df)
    X_test_raw = test_df[data_loader.feature_columns]

    preprocessor = Preprocessor(config)
    X_train = preprocessor.fit_transform(X_train_raw)
    X_test = preprocessor.transform(X_test_raw)
    feature_names = preprocessor.feature_names_out

    logger.info(f"Training matrix: {X_train.shape}, evaluation matrix: {X_test.shape}")

    # Resample
    logger.info("\n" + "=" * 60)
    logger.info("RESAMPLING PLAN")
    logger.info("=" * 60)

    fold_plan = ResamplingPlanner(config).make_plan(y_train)

    # Train
    logger.info("\n" + "=" * 60)
    logger.info("TRAINING MODELS")
    logger.info("=" * 60)

    trainer = Trainer(config, fold_plan)
    all_results = trainer.train_all_models(X_train, y_train, feature_names)

    successful_models = {k: v for k, v in all_results.items() if 'error' not in v}

    if not successful_models:
        logger.error("=" * 60)
        logger.error("CRITICAL ERROR: No models were successfully trained!")
        logger.error("=" * 60)
        for model_name, result in all_results.items():
            logger.error(f"  {model_name}: {result['error']}")

        partial_results = {
            'comparison': pd.DataFrame(),
            'model_results': all_results,
            'best_model': None,
            'data_summary': data_summary,
            'config': config
        }
        save_results(partial_results, output_config.get('results_dir', 'results'))
        return partial_results

    logger.info(f"\nSuccessfully trained {len(successful_models)} out of {len(all_results)} models")
    if len(successful_models) < len(all_results):
        failed_models = [k for k in all_results.keys() if 'error' in all_results[k]]
        logger.warning(f"Failed models: {failed_models}")

    # Compare
    logger.info("\n" + "=" * 60)
    logger.info("CREATING COMPARISON")
    logger.info("=" * 60)

    comparison_df = evaluator.evaluate_models(successful_models)
    logger.info("\nModel Comparison:")
    logger.info(comparison_df.to_string(index=False))

    comparison_path = output_config.get('comparison_file', 'results/model_comparison.csv')
    comparison_df.to_csv(comparison_path, index=False)
    logger.info(f"Model comparison saved to {comparison_path}")

    for model_name, model_results in successful_models.items():
        save_tuning_summary(model_results.get('tuning_summary'), model_name,
                            output_config.get('tuning_dir', 'results/tuning'))
        save_feature_importance(model_results.get('feature_importance'), model_name,
                                output_config.get('feature_importance_dir', 'results/feature_importance'))

    best_model_name = trainer.get_best_model()

    # Predict
    logger.info("\n" + "=" * 60)
    logger.info(f"PREDICTING EVALUATION DATA WITH {best_model_name}")
    logger.info("=" * 60)

    best_model = trainer.trained_models[best_model_name]
    test_labels = best_model.predict(X_test)
    test_predictions = evaluator.to_binary(test_labels)

    save_predictions(test_predictions, output_config.get('predictions_file', 'results/predictions.csv'))
    trainer.save_trained_models(preprocessor, best_model_name)

    logger.info(f"Predicted {int(test_predictions.sum())} of {len(test_predictions)} records as "
                f"{evaluator.positive_label}")

    # Visualize
    logger.info("\n" + "=" * 60)
    logger.info("CREATING VISUALIZATIONS FOR ALL MODELS")
    logger.info("=" * 60)

    try:
        visualizer.plot_model_comparison(comparison_df)
        visualizer.plot_fold_scores(successful_models)

        for model_name, model_results in successful_models.items():
            visualize_model_results(model_name, model_results, visualizer)

    except Exception as e:
        logger.error(f"Error creating visualizations: {str(e)}")
        logger.error(traceback.format_exc())

    final_results = {
        'comparison': comparison_df,
        'model_results': all_results,
        'best_model': best_model_name,
        'data_summary': data_summary,
        'preprocessing': {
            'n_features': len(feature_names),
            'feature_names': feature_names,
            'removed_columns': preprocessor.removed_columns
        },
        'resampling': {
            'n_splits': fold_plan.n_splits,
            'n_repeats': fold_plan.n_repeats,
            'random_state': fold_plan.random_state
        },
        'n_predictions': int(len(test_predictions)),
        'positive_predictions': int(np.sum(test_predictions)),
        'config': config,
        'successful_models': len(successful_models),
        'total_models_attempted': len(all_results)
    }

    save_results(final_results, output_config.get('results_dir', 'results'))

    logger.info("=" * 60)
    logger.info(f"PIPELINE COMPLETED - best model: {best_model_name}")
    logger.info("=" * 60)

    return final_results


def main(config_path: str = "config/config.yaml", use_cache: bool = True, skip_eda: bool = False):
    """
    Main pipeline execution

    Args:
        config_path: Path to main configuration file
        use_cache: Whether persisted tuning results and fits may be reused
        skip_eda: Skip the exploratory plots
    """
    config = load_config(config_path)
    setup_logging(config)

    return run_pipeline(config, use_cache=use_cache, skip_eda=skip_eda)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run the census income classification pipeline")
    parser.add_argument("--config", default="config/config.yaml",
                        help="Path to configuration file")
    parser.add_argument("--no-cache", action="store_true",
                        help="Ignore persisted tuning results and model fits")
    parser.add_argument("--skip-eda", action="store_true",
                        help="Skip the exploratory plots")

    args = parser.parse_args()

    try:
        results = main(args.config, use_cache=not args.no_cache, skip_eda=args.skip_eda)
    except Exception as e:
        logger.error(f"Pipeline failed with error: {str(e)}")
        logger.error(traceback.format_exc())
        sys.exit(1)
